"""
Pydantic base models shared by request/response schemas.

DESIGN PRINCIPLE:
- Python attributes are snake_case, the JSON API is camelCase
- Models reflect data structure, not business logic
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base model whose fields serialize with camelCase aliases.
    Accepts either the alias or the attribute name on input.
    """

    class Config:
        alias_generator = to_camel
        populate_by_name = True
