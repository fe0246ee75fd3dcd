from __future__ import annotations

import math
from typing import Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def finite_or_label(value: float) -> Union[float, str]:
    # JSON has no infinity literal
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value
