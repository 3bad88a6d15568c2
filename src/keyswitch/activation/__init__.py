# Activation Module - Active Source Fan-out
#
# Pushes the active source's credential into the process environment,
# the user's persistent environment or shell profiles, and the consumer
# config directory.

from .sinks import (
    ActivationSink,
    ConsumerConfigSink,
    ProcessEnvironmentSink,
    ShellProfileSink,
    WindowsUserEnvironmentSink,
    default_sinks,
)
from .switcher import SourceSwitcher, SwitchResult

__all__ = [
    "ActivationSink",
    "ConsumerConfigSink",
    "ProcessEnvironmentSink",
    "ShellProfileSink",
    "WindowsUserEnvironmentSink",
    "default_sinks",
    "SourceSwitcher",
    "SwitchResult",
]
