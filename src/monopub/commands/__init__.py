"""Command implementations."""

from monopub.commands.audit import AuditCommand, AuditOptions, audit, handle_audit_command
from monopub.commands.base import Command, CommandContext, SyncCommand
from monopub.commands.publish import (
    PublishCommand,
    PublishOptions,
    PublishResult,
    handle_publish_command,
    publish,
)
from monopub.commands.recover import (
    RecoverCommand,
    RecoverOptions,
    RecoverResult,
    handle_recover_command,
    recover,
)
from monopub.commands.status import StatusCommand, StatusResult, handle_status_command, status

__all__ = [
    "AuditCommand",
    "AuditOptions",
    "Command",
    "CommandContext",
    "PublishCommand",
    "PublishOptions",
    "PublishResult",
    "RecoverCommand",
    "RecoverOptions",
    "RecoverResult",
    "StatusCommand",
    "StatusResult",
    "SyncCommand",
    "audit",
    "handle_audit_command",
    "handle_publish_command",
    "handle_recover_command",
    "handle_status_command",
    "publish",
    "recover",
    "status",
]
