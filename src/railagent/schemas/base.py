from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """
    Base for models that travel over the wire: snake_case in Python,
    camelCase in JSON (dump with by_alias=True).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
