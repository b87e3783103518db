from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base for request and response schemas; reads ORM objects and dataclasses."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=False,
    )
