from typing import Optional

from pydantic import BaseModel, Field, ConfigDict


class Charity(BaseModel):
    """Catalog entry. Charity ids are opaque strings."""
    id: str = Field(alias="_id")
    name: str
    description: str = ""
    logo_url: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)
