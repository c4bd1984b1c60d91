from .base import JobSource, RetryPolicy
from .mock import MockSource
from .remoteok import RemoteOKSource
from .remotive import RemotiveSource
from .weworkremotely import WeWorkRemotelySource

from job_notifier.log import get_logger

log = get_logger(__name__)

__all__ = [
    "JobSource", "RetryPolicy", "MockSource", "RemoteOKSource",
    "RemotiveSource", "WeWorkRemotelySource", "SOURCE_CLASSES", "get_sources",
]

SOURCE_CLASSES: dict[str, type[JobSource]] = {
    cls.name: cls
    for cls in (RemoteOKSource, RemotiveSource, WeWorkRemotelySource, MockSource)
}


def get_sources(enabled: frozenset[str] | set[str], retry_policy: RetryPolicy) -> list[JobSource]:
    """Build every known source; only those named in ``enabled`` will fetch."""
    sources: list[JobSource] = []
    for name, cls in SOURCE_CLASSES.items():
        on = name in enabled
        sources.append(cls(retry_policy=retry_policy, enabled=on))
        if on:
            log.info("Registered source: %s", name)
    return sources
