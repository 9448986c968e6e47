"""
Push local documents to the remote mirror.

push(keys, force) contract:
- force=False: merge with the remote copy (local wins per item) so concurrent
  writers are not clobbered. Used for exam submissions, approvals, marking.
- force=True: overwrite the remote copy with local state. Used for admin
  retake/delete actions, where removing or archiving must stick.

Failures never undo local writes; callers get a SyncOutcome with ok=False.
"""
import logging

from django.conf import settings
from django.utils.module_loading import import_string

from core.store import DocumentStore, SESSION_KEYS

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Remote push failed after retries."""


class SyncOutcome:
    def __init__(self, ok, keys, forced=False, skipped=None, error=None):
        self.ok = ok
        self.keys = list(keys)
        self.forced = forced
        self.skipped = list(skipped or [])
        self.error = error

    def to_dict(self):
        return {
            'ok': self.ok,
            'keys': self.keys,
            'forced': self.forced,
            'skipped': self.skipped,
            'error': self.error,
        }

    def __repr__(self):
        return f"SyncOutcome(ok={self.ok}, keys={self.keys}, forced={self.forced})"


def _same_item(key, a, b):
    """Whether two list items describe the same entity."""
    if isinstance(a, dict) and isinstance(b, dict):
        if a.get('id') and b.get('id'):
            return str(a['id']) == str(b['id'])
        # Legacy records without ids: composite key
        if key == 'records' and a.get('trainee') and b.get('trainee'):
            return (
                a['trainee'].lower() == b['trainee'].lower()
                and (a.get('assessment') or '').lower() == (b.get('assessment') or '').lower()
                and a.get('groupID') == b.get('groupID')
                and a.get('phase') == b.get('phase')
            )
    return a == b


def _merge_lists(key, remote, local):
    combined = list(remote)
    for item in local:
        index = next((i for i, existing in enumerate(combined) if _same_item(key, existing, item)), None)
        if index is None:
            combined.append(item)
        else:
            combined[index] = item
    return combined


def merge_documents(key, remote, local):
    """
    Merge one document, local wins.
    Lists are merged item by item; session documents also merge their trainees map.
    """
    if isinstance(remote, list) and isinstance(local, list):
        return _merge_lists(key, remote, local)
    if key in SESSION_KEYS and isinstance(remote, dict) and isinstance(local, dict):
        merged = {**remote, **local}
        merged['trainees'] = {**(remote.get('trainees') or {}), **(local.get('trainees') or {})}
        return merged
    if isinstance(remote, dict) and isinstance(local, dict):
        return {**remote, **local}
    return local if local is not None else remote


class BaseSync:
    """Sync backend interface."""

    def __init__(self, local=None):
        self.local = local or DocumentStore()

    def push(self, keys, force=False):
        raise NotImplementedError


class NullSync(BaseSync):
    """Local-only operation: nothing leaves this process."""

    def push(self, keys, force=False):
        keys = list(keys)
        logger.debug("sync disabled keys=%s force=%s", keys, force)
        return SyncOutcome(ok=True, keys=[], forced=force, skipped=keys)


class DocumentMirrorSync(BaseSync):
    """
    Mirror documents into a second store (by default the 'remote' database alias).
    The remote only needs get(key) and set(key, value).
    """

    def __init__(self, local=None, remote=None, retries=None):
        super().__init__(local)
        self.remote = remote or DocumentStore(using=settings.DOCUMENT_SYNC_DATABASE)
        self.retries = settings.SYNC_RETRY_COUNT if retries is None else retries

    def _push_key(self, key, force):
        local_value = self.local.load(key)
        final = local_value
        if not force:
            remote_value = self.remote.get(key)
            if remote_value is not None:
                final = merge_documents(key, remote_value, local_value)
        self.remote.set(key, final)
        # Local copy now matches what the remote holds
        self.local.set(key, final)

    def push(self, keys, force=False):
        keys = list(keys)
        last_error = None
        for attempt in range(self.retries + 1):
            try:
                for key in keys:
                    self._push_key(key, force)
            except Exception as e:
                last_error = e
                logger.warning("sync push failed attempt=%s keys=%s force=%s: %s", attempt + 1, keys, force, e)
                continue
            logger.info("synced keys=%s force=%s", ','.join(keys), force)
            return SyncOutcome(ok=True, keys=keys, forced=force)
        raise SyncError(f"Could not push {', '.join(keys)}: {last_error}") from last_error


def get_sync_backend(local=None):
    """Instantiate settings.DOCUMENT_SYNC_BACKEND."""
    backend_class = import_string(settings.DOCUMENT_SYNC_BACKEND)
    return backend_class(local=local)


def push_changes(keys, force=False, store=None, backend=None):
    """
    Best-effort push. Returns a SyncOutcome; a failed push is logged and reported,
    never raised, since the local write has already succeeded.
    """
    backend = backend or get_sync_backend(store)
    keys = list(keys)
    try:
        return backend.push(keys, force=force)
    except SyncError as e:
        logger.error("push_changes failed keys=%s force=%s: %s", keys, force, e)
        return SyncOutcome(ok=False, keys=keys, forced=force, error=str(e))
