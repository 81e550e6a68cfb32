"""
Cameroonian report-card grading.

Marks are out of 20. A subject's term average weighs continuous
assessment (CC) at 30% and the term exam at 70%; the term average is
the coefficient-weighted mean of subject averages; the annual average
is the weighted mean of the term averages.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

SCALE = 20
TERMS = ('T1', 'T2', 'T3')
TERM_WEIGHTS = {'T1': 1, 'T2': 1, 'T3': 1}
COMPONENT_WEIGHTS = {'CC': 0.3, 'EXAM': 0.7}

APPRECIATIONS = (
    (18, 'Excellent', 'Excellent'),
    (16, 'Très bien', 'Very good'),
    (14, 'Bien', 'Good'),
    (12, 'Assez bien', 'Fairly good'),
    (10, 'Passable', 'Average'),
    (8, 'Médiocre', 'Mediocre'),
)
LOWEST = ('Faible', 'Poor')
NOT_EVALUATED = ('Non évalué', 'Not evaluated')


class GradingError(ValueError):
    pass


def round2(x) -> Optional[float]:
    """Round half away from zero to 2 decimals (12.345 -> 12.35)."""
    if x is None:
        return None
    return float(Decimal(str(x)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def assert_in_range_or_none(value, label='note'):
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise GradingError(f'Note invalide pour {label}: {value!r}')
    if value < 0 or value > SCALE:
        raise GradingError(f'Note invalide pour {label}: {value} (attendu 0..{SCALE})')


def subject_term_average(cc, exam, label='matière') -> Optional[float]:
    assert_in_range_or_none(cc, f'{label} CC')
    assert_in_range_or_none(exam, f'{label} examen')

    if cc is None and exam is None:
        return None
    if cc is not None and exam is not None:
        return round2(cc * COMPONENT_WEIGHTS['CC'] + exam * COMPONENT_WEIGHTS['EXAM'])
    # a single mark counts for 100%
    return round2(cc if cc is not None else exam)


def term_average(subjects: Iterable[dict]) -> Optional[float]:
    """
    Coefficient-weighted average of the subjects that have a term average.

    Each subject is a dict with ``cc``, ``exam`` and ``coefficient`` (default 1).
    """
    total = 0.0
    total_coef = 0.0
    for subject in subjects:
        avg = subject_term_average(subject.get('cc'), subject.get('exam'), subject.get('code', 'matière'))
        if avg is None:
            continue
        coef = subject.get('coefficient', 1)
        total += avg * coef
        total_coef += coef

    if total_coef <= 0:
        return None
    return round2(total / total_coef)


def annual_average(term_averages: Dict[str, Optional[float]]) -> Optional[float]:
    total = 0.0
    total_weight = 0.0
    for term, weight in TERM_WEIGHTS.items():
        avg = term_averages.get(term)
        if avg is None:
            continue
        total += avg * weight
        total_weight += weight

    if total_weight <= 0:
        return None
    return round2(total / total_weight)


def appreciation(avg, language='fr') -> str:
    index = 1 if language == 'en' else 0
    if avg is None:
        return NOT_EVALUATED[index]
    for threshold, fr, en in APPRECIATIONS:
        if avg >= threshold:
            return (fr, en)[index]
    return LOWEST[index]


def class_statistics(averages: Iterable[Optional[float]]) -> dict:
    values = [avg for avg in averages if avg is not None]
    if not values:
        return {'min': None, 'max': None, 'mean': None, 'size': 0}
    return {
        'min': min(values),
        'max': max(values),
        'mean': round2(sum(values) / len(values)),
        'size': len(values),
    }


def rank_students(averages: Dict[str, Optional[float]]) -> Dict[str, Optional[int]]:
    """
    Competition ranking ("1224"): equal averages share a rank and the
    next rank skips. Students without an average are not ranked.
    """
    ranked = sorted((avg for avg in averages.values() if avg is not None), reverse=True)
    ranks = {}
    for key, avg in averages.items():
        if avg is None:
            ranks[key] = None
        else:
            ranks[key] = ranked.index(avg) + 1
    return ranks


def generate_bulletin(student: dict, subjects: List[dict], term: str,
                      class_averages: Optional[Dict[str, Optional[float]]] = None,
                      language: str = 'fr') -> dict:
    """
    Compute a term bulletin for one student.

    ``class_averages`` maps student ids to their term average for the
    whole class; the student's own average is added when missing.
    """
    if term not in TERMS:
        raise GradingError(f'Trimestre inconnu: {term}')

    rows = []
    total_points = 0.0
    total_coef = 0.0
    for subject in subjects:
        code = subject.get('code', '')
        coef = subject.get('coefficient', 1)
        avg = subject_term_average(subject.get('cc'), subject.get('exam'), code or 'matière')
        if avg is not None:
            total_points += avg * coef
            total_coef += coef
        rows.append({
            'code': code,
            'name': subject.get('name', code),
            'coefficient': coef,
            'cc': subject.get('cc'),
            'exam': subject.get('exam'),
            'average': avg,
            'points': round2(avg * coef) if avg is not None else None,
            'appreciation': appreciation(avg, language),
            'teacher_comment': subject.get('teacher_comment', ''),
        })

    average = round2(total_points / total_coef) if total_coef > 0 else None

    student_key = str(student.get('id', ''))
    averages = {str(k): v for k, v in (class_averages or {}).items()}
    averages.setdefault(student_key, average)

    return {
        'student': student,
        'term': term,
        'subjects': rows,
        'total_points': round2(total_points),
        'total_coefficients': total_coef,
        'term_average': average,
        'rank': rank_students(averages).get(student_key),
        'class_statistics': class_statistics(averages.values()),
        'appreciation': appreciation(average, language),
    }
