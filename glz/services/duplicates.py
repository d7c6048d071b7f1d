from __future__ import annotations

import logging
from typing import Optional

from ..models import Certificate
from ..shared.names import normalize_full_name

logger = logging.getLogger("glz.duplicates")


def find_conflict(candidate, exclude_id: Optional[int] = None) -> Optional[Certificate]:
    """Return an existing certificate describing the same learner and period.

    Same learner means equal normalized name, date of birth and level; the
    course periods must overlap, touching endpoints included. This is a
    read-then-decide check: two concurrent submissions can both pass it.
    """

    query = Certificate.query.filter(
        Certificate.full_name_normalized == normalize_full_name(candidate.full_name),
        Certificate.date_of_birth == candidate.date_of_birth,
        Certificate.reference_level == candidate.reference_level,
        Certificate.course_start_date <= candidate.course_end_date,
        Certificate.course_end_date >= candidate.course_start_date,
    )
    if exclude_id is not None:
        query = query.filter(Certificate.id != exclude_id)
    conflict = query.order_by(Certificate.id).first()
    if conflict is not None:
        logger.info(
            "[CERT-DUPLICATE] conflict_id=%s ref=%s name=%r start=%s end=%s excluded=%s",
            conflict.id,
            conflict.reference_number,
            conflict.full_name,
            conflict.course_start_date,
            conflict.course_end_date,
            exclude_id,
        )
    return conflict
