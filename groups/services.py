"""
Group services - roster lookups and retake-cycle classification.
Rosters are a mapping of group id -> member names. Group ids are date-prefixed
strings ("2024-05", "2024-05-2"), so lexicographic order is chronological.
"""

NEW_ONBOARD = "New Onboard"


def classify_cycle(trainee, current_group_id, roster_history):
    """
    Retake-cycle label for a trainee in current_group_id.
    Counts memberships in groups sorted strictly before current_group_id:
    0 -> "New Onboard", n -> "Retrain n".
    """
    if not trainee or not current_group_id:
        return NEW_ONBOARD

    previous_count = 0
    for group_id in sorted((roster_history or {}).keys()):
        if group_id >= current_group_id:
            break
        if trainee in (roster_history[group_id] or []):
            previous_count += 1

    if previous_count == 0:
        return NEW_ONBOARD
    return f"Retrain {previous_count}"


def find_trainee_group(trainee, rosters, default="Unknown"):
    """
    Group id the trainee currently belongs to (case-insensitive name match).
    When the trainee appears in several groups the latest one wins.
    """
    if not trainee:
        return default
    name = trainee.strip().lower()
    matches = [
        group_id for group_id, members in (rosters or {}).items()
        if any((m or '').strip().lower() == name for m in (members or []))
    ]
    return max(matches) if matches else default
