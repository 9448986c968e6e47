"""
Score records: normalized {id, groupID, trainee, assessment, score, date, phase, cycle, link}
entries used for cross-test reporting. Records are derived from submissions and
manual capture; they are summaries, not the source of truth.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from assessments.exceptions import AssessmentError
from core.utils import generate_id, today_iso
from groups.services import classify_cycle, find_trainee_group

logger = logging.getLogger(__name__)

RECORD_KEY = ('trainee', 'assessment')
CAPTURE_KEY = ('trainee', 'assessment', 'groupID', 'phase')
UPDATE_FIELDS = ('score', 'date', 'cycle', 'phase', 'link')
VETTING_PHASES = ('1st Vetting', 'Final Vetting')
DIGITAL_LINK = 'Digital-Assessment'


def _matches(record, new_record, key_fields):
    return all(record.get(field) == new_record.get(field) for field in key_fields)


def upsert_record(records, new_record, key_fields=RECORD_KEY, update_fields=UPDATE_FIELDS):
    """
    Insert or update a record, returning a new list.
    Key match is exact (case-sensitive assessment name). An existing record keeps
    its id and gets update_fields overwritten; otherwise new_record is appended
    with a fresh id. Applying the same record twice yields the same state.
    """
    updated = [dict(r) for r in (records or [])]
    for record in updated:
        if _matches(record, new_record, key_fields):
            for field in update_fields:
                if field in new_record:
                    record[field] = new_record[field]
            if not record.get('id'):
                # Legacy record stored without an id
                record['id'] = generate_id()
            return updated

    record = dict(new_record)
    record['id'] = record.get('id') or generate_id()
    updated.append(record)
    return updated


def phase_for_title(title):
    return 'Vetting' if 'vetting' in (title or '').lower() else 'Assessment'


def build_submission_record(submission, rosters):
    """Record for a completed digital submission (group and cycle resolved from rosters)."""
    group_id = find_trainee_group(submission['trainee'], rosters)
    return {
        'groupID': group_id,
        'trainee': submission['trainee'],
        'assessment': submission['testTitle'],
        'score': submission['score'],
        'date': submission['date'],
        'phase': phase_for_title(submission['testTitle']),
        'cycle': classify_cycle(submission['trainee'], group_id, rosters),
        'link': DIGITAL_LINK,
        'docSaved': True,
    }


def capture_scores(records, rosters, group_id, assessment, phase, scores, capture_date=None, vetting_topic=None):
    """
    Manual score capture for one group.
    scores: {trainee: score or {"score", "docSaved", "videoSaved"}}. Blank scores are
    skipped, 0 is kept. Vetting phases record under "<phase> - <topic>".
    Keyed by trainee + assessment + groupID + phase. Returns (records, saved_count).
    """
    if not group_id:
        raise AssessmentError('Please select a group.', code='group_required')
    assessment_name = assessment
    if phase in VETTING_PHASES:
        if not vetting_topic:
            raise AssessmentError('Please select a Vetting Topic.', code='vetting_topic_required')
        assessment_name = f"{phase} - {vetting_topic}"
    capture_date = capture_date or today_iso()

    saved = 0
    for trainee, entry in (scores or {}).items():
        entry = entry if isinstance(entry, dict) else {'score': entry}
        raw_score = entry.get('score')
        if raw_score is None or str(raw_score).strip() == '':
            continue
        try:
            score = int(Decimal(str(raw_score).strip()).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        except (InvalidOperation, TypeError, ValueError):
            raise AssessmentError(f'Score for {trainee} must be a number', code='invalid_score')
        record = {
            'groupID': group_id,
            'trainee': trainee,
            'assessment': assessment_name,
            'score': score,
            'date': capture_date,
            'phase': phase,
            'cycle': classify_cycle(trainee, group_id, rosters),
            'docSaved': bool(entry.get('docSaved')),
            'videoSaved': bool(entry.get('videoSaved')),
            'link': '',
        }
        records = upsert_record(
            records,
            record,
            key_fields=CAPTURE_KEY,
            update_fields=('score', 'cycle', 'date', 'docSaved', 'videoSaved'),
        )
        saved += 1

    logger.info("capture_scores group_id=%s assessment=%s phase=%s saved=%s", group_id, assessment_name, phase, saved)
    return records, saved
