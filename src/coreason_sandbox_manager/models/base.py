# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox_manager

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SandboxModel(BaseModel):
    """Base model for public payloads.

    Fields are snake_case in Python and camelCase on the wire
    (``model_dump(by_alias=True)``). Both spellings are accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
