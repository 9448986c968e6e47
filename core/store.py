"""
Document store: get/set of whole JSON documents by key, backed by AppDocument.

Identifiers are normalized to strings when collections are read so that the
rest of the code can compare them strictly.
"""
import copy
import logging

from core.models import AppDocument
from core.utils import normalize_id

logger = logging.getLogger(__name__)

# Default value for each known key when nothing has been stored yet
DOCUMENT_DEFAULTS = {
    'tests': [],
    'submissions': [],
    'records': [],
    'rosters': {},
    'draft_assessment': {},
    'liveSession': {'active': False, 'testId': None, 'trainees': {}},
    'vettingSession': {'active': False, 'testId': None, 'trainees': {}},
}

# Fields holding identifiers, per collection key
ID_FIELDS = {
    'tests': ('id',),
    'submissions': ('id', 'testId'),
    'records': ('id',),
}

SESSION_KEYS = ('liveSession', 'vettingSession')


def normalize_document(key, value):
    """Return value with identifier fields canonicalized for the given key."""
    if value is None:
        return value
    fields = ID_FIELDS.get(key)
    if fields and isinstance(value, list):
        out = []
        for item in value:
            if isinstance(item, dict):
                item = dict(item)
                for field in fields:
                    if field in item:
                        item[field] = normalize_id(item[field])
            out.append(item)
        return out
    if key in SESSION_KEYS and isinstance(value, dict):
        value = dict(value)
        if 'testId' in value:
            value['testId'] = normalize_id(value['testId'])
        if not isinstance(value.get('trainees'), dict):
            value['trainees'] = {}
        return value
    if key == 'rosters' and isinstance(value, dict):
        return {str(gid): list(members or []) for gid, members in value.items()}
    if key == 'draft_assessment' and isinstance(value, dict) and 'test' in value:
        # Single draft saved before drafts were kept per trainee
        trainee = value.get('trainee')
        return {trainee: value} if trainee else {}
    return value


class DocumentStore:
    """
    Key-value persistence over the AppDocument table.
    `using` selects the database alias (default local DB, 'remote' for the mirror).
    """

    def __init__(self, using='default'):
        self.using = using

    def _documents(self):
        return AppDocument.objects.using(self.using)

    def get(self, key):
        """Stored JSON for key, or None when the key was never written."""
        doc = self._documents().filter(key=key).first()
        if doc is None:
            return None
        return normalize_document(key, doc.content)

    def set(self, key, value):
        self._documents().update_or_create(key=key, defaults={'content': value})
        logger.debug("document_store set key=%s using=%s", key, self.using)

    def delete(self, key):
        self._documents().filter(key=key).delete()

    def load(self, key):
        """Like get(), but falls back to a fresh copy of the schema default for known keys."""
        value = self.get(key)
        if value is None:
            return copy.deepcopy(DOCUMENT_DEFAULTS.get(key))
        return value

    def keys(self):
        return list(self._documents().values_list('key', flat=True))
