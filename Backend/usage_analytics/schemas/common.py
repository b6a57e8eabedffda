from datetime import datetime

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Annotated

from usage_analytics.utils.dates import ensure_utc


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# SQLite hands back naive datetimes; everything stored is UTC
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
