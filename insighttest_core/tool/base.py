from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from ..infra.sandbox.manager import SandboxManager
from ..infra.vcs.github import GitHubClient
from ..schema.config import CoreConfig
from ..schema.result import Result
from ..schema.tool import ToolRequestBase, ToolSchema, ToolSecrets


@dataclass
class ToolContext:
    """Per-call state handed to a tool handler by the dispatcher."""

    trace_id: str
    secrets: ToolSecrets = field(default_factory=ToolSecrets)
    sandbox_manager: Optional[SandboxManager] = None
    github_client: Optional[GitHubClient] = None
    config: Optional[CoreConfig] = None


ToolHandler = Callable[[ToolContext, ToolRequestBase], Awaitable[Result]]


@dataclass
class Tool:
    schema: ToolSchema = None
    request_model: type[ToolRequestBase] = None
    handler: ToolHandler = None

    @property
    def name(self) -> str:
        return self.schema.function.name

    def use_schema(self, schema: ToolSchema) -> "Tool":
        self.schema = schema
        return self

    def use_request_model(self, request_model: type[ToolRequestBase]) -> "Tool":
        self.request_model = request_model
        return self

    def use_handler(self, handler: ToolHandler) -> "Tool":
        self.handler = handler
        return self


ToolPool = dict[str, Tool]
