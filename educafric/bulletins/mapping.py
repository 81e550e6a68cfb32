"""
Template element catalogue and data mapping.

Every element a bulletin template can place on the page is described by an
ElementMapping: where its data comes from, which field, how it is shown and
what it falls back to when the data is missing.

Render context layout (one key per data source):

    {
        'bulletin': {...},       # term, academic_year, averages, absences, visas
        'subject_codes': {...},  # CTBA, CBA, CA, CMA, COTE, CNA, min/max
        'student': {...},
        'class': {...},
        'school': {...},
        'grades': {...},         # subjects table, per-subject values
    }
"""
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from dateutil import parser as date_parser

DATA_SOURCES = ('bulletin', 'subject_codes', 'student', 'class', 'school', 'grades')

CATEGORIES = (
    'header', 'student_info', 'academic', 'grades', 'coefficients', 'averages',
    'statistics', 'attendance', 'sanctions', 'appreciations', 'class_council',
    'signatures', 'footer', 'layout',
)

DATE_FORMAT = 'date'
STATIC_FIELD = 'static'

# Layout elements carry their own content in ``properties``
STATIC_ELEMENT_TYPES = ('text', 'image', 'line', 'rectangle', 'school_logo', 'official_stamp')

_PLACEHOLDER_RE = re.compile(r'\{(\w+)\}')


class UnknownElementError(KeyError):
    pass


@dataclass(frozen=True)
class ElementMapping:
    element_type: str
    category: str
    data_source: str
    data_field: str
    fallback_value: Any = ''
    format: Optional[str] = None
    validation: Optional[dict] = None
    dependencies: tuple = field(default_factory=tuple)
    multilingual: Optional[dict] = None
    description: str = ''

    def to_dict(self):
        return {
            'element_type': self.element_type,
            'category': self.category,
            'data_source': self.data_source,
            'data_field': self.data_field,
            'fallback_value': self.fallback_value,
            'format': self.format,
            'validation': self.validation,
            'dependencies': list(self.dependencies),
            'multilingual': self.multilingual,
            'description': self.description,
        }


GRADE_RANGE = {'min': 0, 'max': 20}
NON_NEGATIVE = {'min': 0}

_M = ElementMapping

ELEMENT_MAPPINGS = {m.element_type: m for m in (
    # header
    _M('bulletin_title', 'header', 'bulletin', 'term,academic_year', 'Bulletin Scolaire',
       format='BULLETIN SCOLAIRE - {term} {academic_year}',
       multilingual={'fr': 'BULLETIN SCOLAIRE - {term} {academic_year}',
                     'en': 'REPORT CARD - {term} {academic_year}'},
       description='Titre avec trimestre et année'),
    _M('school_name', 'header', 'school', 'name', 'École Non Spécifiée'),
    _M('school_address', 'header', 'school', 'address'),
    _M('school_phone', 'header', 'school', 'phone', format='Tél: {value}'),
    _M('school_region', 'header', 'school', 'region',
       multilingual={'fr': 'Région: {value}', 'en': 'Region: {value}'}),
    _M('performance_levels_text', 'header', 'bulletin', STATIC_FIELD,
       multilingual={
           'fr': "NIVEAU DE RENDEMENT: le niveau de rendement est déterminé par les résultats "
                 "obtenus après l'évaluation des apprentissages.",
           'en': 'PERFORMANCE LEVELS: the level of performance is determined by the score '
                 'obtained in the summative assessment.',
       }),

    # student_info
    _M('student_name', 'student_info', 'student', 'first_name,last_name', 'Nom Non Renseigné',
       format='{last_name} {first_name}'),
    _M('student_matricule', 'student_info', 'student', 'matricule', 'MAT-XXXX', format='Matricule: {value}',
       validation={'pattern': r'^[A-Za-z0-9\-/]+$'}),
    _M('student_class', 'student_info', 'class', 'name', 'Classe Non Définie', format='Classe: {value}'),
    _M('student_photo', 'student_info', 'student', 'photo', '/static/images/default-student.png'),
    _M('student_birth_date', 'student_info', 'student', 'birth_date', format=DATE_FORMAT),
    _M('student_birth_place', 'student_info', 'student', 'birth_place'),
    _M('student_gender', 'student_info', 'student', 'gender',
       multilingual={'fr': 'Sexe: {value}', 'en': 'Gender: {value}'},
       validation={'enum': ['M', 'F', '']}),
    _M('student_repeater', 'student_info', 'student', 'is_repeater', False),

    # academic
    _M('academic_year', 'academic', 'bulletin', 'academic_year', format='Année Scolaire: {value}',
       validation={'pattern': r'^\d{4}-\d{4}$'}),
    _M('term_semester', 'academic', 'bulletin', 'term', 'T1',
       multilingual={'fr': 'Trimestre: {value}', 'en': 'Term: {value}'},
       validation={'enum': ['T1', 'T2', 'T3']}),
    _M('class_level', 'academic', 'class', 'level'),
    _M('total_students', 'academic', 'class', 'student_count', 0, format='Effectif: {value} élèves',
       validation=NON_NEGATIVE),
    _M('head_teacher', 'academic', 'class', 'head_teacher'),

    # grades
    _M('subject_grades', 'grades', 'grades', 'subjects', []),
    _M('subject_grades_detailed', 'grades', 'grades', 'subjects_detailed', []),
    _M('individual_subject_grade', 'grades', 'grades', 'subject_grade', '--', format='{value}/20',
       validation=GRADE_RANGE),
    _M('subject_comment', 'grades', 'grades', 'subject_comment'),

    # coefficients
    _M('ctba_value', 'coefficients', 'subject_codes', 'CTBA', '--', format='{value}/20', validation=GRADE_RANGE),
    _M('cba_value', 'coefficients', 'subject_codes', 'CBA', '--', format='{value}/20', validation=GRADE_RANGE),
    _M('ca_value', 'coefficients', 'subject_codes', 'CA', '--', format='{value}/20', validation=GRADE_RANGE),
    _M('cma_value', 'coefficients', 'subject_codes', 'CMA', '--', format='{value}/20', validation=GRADE_RANGE),
    _M('cote_value', 'coefficients', 'subject_codes', 'COTE', '--',
       validation={'enum': ['A', 'B', 'C', 'D', 'E', 'F']}),
    _M('cna_value', 'coefficients', 'subject_codes', 'CNA'),
    _M('min_max_grades', 'coefficients', 'subject_codes', 'min_grade,max_grade', '--',
       format='[{min_grade}-{max_grade}]'),
    _M('coefficient_table', 'coefficients', 'subject_codes', 'coefficients', []),

    # averages
    _M('general_average', 'averages', 'bulletin', 'general_average', '--', format='{value}/20',
       validation=GRADE_RANGE),
    _M('trimester_average', 'averages', 'bulletin', 'term_average', '--', format='{value}/20',
       validation=GRADE_RANGE),
    _M('subject_average', 'averages', 'grades', 'term_average', '--', format='{value}/20',
       validation=GRADE_RANGE),
    _M('total_general', 'averages', 'bulletin', 'total_points', '--'),
    _M('number_of_averages', 'averages', 'bulletin', 'number_of_averages', 0, format='{value} matières',
       validation=NON_NEGATIVE),
    _M('class_average', 'averages', 'class', 'class_average', '--', format='{value}/20', validation=GRADE_RANGE),

    # statistics
    _M('class_rank', 'statistics', 'bulletin', 'rank,class_size', '--', format='{rank}e/{class_size}',
       dependencies=('total_students',)),
    _M('success_rate', 'statistics', 'bulletin', 'success_rate', '--', format='{value}%',
       validation={'min': 0, 'max': 100}),
    _M('performance_level', 'statistics', 'bulletin', 'appreciation', '--',
       dependencies=('general_average',)),
    _M('class_min_max', 'statistics', 'class', 'min_average,max_average', '--',
       format='Min: {min_average} / Max: {max_average}'),
    _M('grade_distribution', 'statistics', 'class', 'grade_distribution', {}),

    # attendance
    _M('unjustified_absences', 'attendance', 'bulletin', 'unjustified_absence_hours', '0.00', format='{value}h',
       validation=NON_NEGATIVE),
    _M('justified_absences', 'attendance', 'bulletin', 'justified_absence_hours', '0.00', format='{value}h',
       validation=NON_NEGATIVE),
    _M('lateness_count', 'attendance', 'bulletin', 'lateness_count', 0, format='{value} retards',
       validation=NON_NEGATIVE),
    _M('detention_hours', 'attendance', 'bulletin', 'detention_hours', '0.00', format='{value}h',
       validation=NON_NEGATIVE),

    # sanctions
    _M('conduct_warning', 'sanctions', 'bulletin', 'conduct_warning', False),
    _M('conduct_blame', 'sanctions', 'bulletin', 'conduct_blame', False),
    _M('exclusion_days', 'sanctions', 'bulletin', 'exclusion_days', 0, format='{value} jours',
       validation=NON_NEGATIVE),
    _M('permanent_exclusion', 'sanctions', 'bulletin', 'permanent_exclusion', False),
    _M('disciplinary_record', 'sanctions', 'bulletin',
       'conduct_warning,conduct_blame,exclusion_days,permanent_exclusion', {}),

    # appreciations
    _M('work_appreciation', 'appreciations', 'bulletin', 'work_appreciation', validation={'max_length': 500}),
    _M('general_comment', 'appreciations', 'bulletin', 'general_comment', validation={'max_length': 300}),
    _M('teacher_appreciation', 'appreciations', 'grades', 'teacher_comment'),

    # class_council
    _M('class_council_decisions', 'class_council', 'bulletin', 'class_council_decisions',
       validation={'max_length': 1000}),
    _M('class_council_mentions', 'class_council', 'bulletin', 'class_council_mentions',
       validation={'enum': ['Félicitations', 'Encouragements', 'Satisfaisant', 'Mise en garde', 'Blâme', '']}),
    _M('council_date', 'class_council', 'bulletin', 'council_date', format=DATE_FORMAT),
    _M('council_president', 'class_council', 'school', 'principal'),

    # signatures
    _M('parent_signature', 'signatures', 'bulletin', 'parent_visa', {'name': '', 'date': '', 'signature_url': ''}),
    _M('teacher_signature', 'signatures', 'bulletin', 'teacher_visa', {'name': '', 'date': '', 'signature_url': ''}),
    _M('headmaster_signature', 'signatures', 'bulletin', 'headmaster_visa',
       {'name': '', 'date': '', 'signature_url': ''}),
    _M('parent_visa_date', 'signatures', 'bulletin', 'parent_visa.date', format=DATE_FORMAT),
    _M('teacher_visa_date', 'signatures', 'bulletin', 'teacher_visa.date', format=DATE_FORMAT),
    _M('headmaster_visa_date', 'signatures', 'bulletin', 'headmaster_visa.date', format=DATE_FORMAT),
    _M('signature_block', 'signatures', 'bulletin', 'parent_visa,teacher_visa,headmaster_visa', {}),

    # footer
    _M('school_motto', 'footer', 'school', 'motto'),
    _M('issue_date', 'footer', 'bulletin', 'issued_at', format=DATE_FORMAT),
    _M('verification_code', 'footer', 'bulletin', 'verification_code',
       multilingual={'fr': 'Code de vérification: {value}', 'en': 'Verification code: {value}'},
       validation={'pattern': r'^[A-Z0-9\-]+$'}),
    _M('footer_notice', 'footer', 'bulletin', STATIC_FIELD,
       multilingual={'fr': 'Bulletin à conserver soigneusement. Aucun duplicata ne sera délivré.',
                     'en': 'Keep this report card safely. No duplicate will be issued.'}),
)}


def is_known_element(element_type):
    return element_type in ELEMENT_MAPPINGS or element_type in STATIC_ELEMENT_TYPES


def get_mapping(element_type):
    try:
        return ELEMENT_MAPPINGS[element_type]
    except KeyError:
        raise UnknownElementError(element_type)


def elements_by_category(category):
    return [m for m in ELEMENT_MAPPINGS.values() if m.category == category]


def dependencies(element_type):
    return list(get_mapping(element_type).dependencies)


class BulletinDataMapper:
    """Resolves element values against one render context."""

    def __init__(self, context=None, language='fr'):
        self.context = context or {}
        self.language = language if language in ('fr', 'en') else 'fr'

    def source_data(self, data_source):
        if data_source not in DATA_SOURCES:
            return None
        return self.context.get(data_source)

    @staticmethod
    def nested_value(data, path):
        current = data
        for key in path.split('.'):
            if isinstance(current, dict):
                current = current.get(key)
            elif isinstance(current, (list, tuple)) and key.isdigit() and int(key) < len(current):
                current = current[int(key)]
            else:
                return None
            if current is None:
                return None
        return current

    @classmethod
    def extract_field(cls, data, field_path):
        if data is None:
            return None
        if ',' in field_path:
            return {name.strip(): cls.nested_value(data, name.strip()) for name in field_path.split(',')}
        return cls.nested_value(data, field_path)

    def raw_value(self, mapping):
        if mapping.data_field == STATIC_FIELD:
            return None
        return self.extract_field(self.source_data(mapping.data_source), mapping.data_field)

    @staticmethod
    def _is_empty(value):
        if value is None or value == '':
            return True
        # composite fields are empty when every part is
        if isinstance(value, dict) and value and all(v is None or v == '' for v in value.values()):
            return True
        return False

    def format_value(self, value, mapping):
        if mapping.data_field == STATIC_FIELD and mapping.multilingual:
            return mapping.multilingual.get(self.language, mapping.multilingual.get('fr'))

        if self._is_empty(value):
            return mapping.fallback_value

        fmt = mapping.format
        if mapping.multilingual:
            fmt = mapping.multilingual.get(self.language, fmt)
        if fmt == DATE_FORMAT:
            return self.format_date(value)
        if fmt:
            return self.apply_format(value, fmt)
        return value

    @staticmethod
    def format_date(value):
        if hasattr(value, 'strftime'):
            return value.strftime('%d/%m/%Y')
        try:
            return date_parser.isoparse(str(value)).strftime('%d/%m/%Y')
        except ValueError:
            return str(value)

    @staticmethod
    def apply_format(value, fmt):
        if isinstance(value, dict):
            def replace(match):
                part = value.get(match.group(1))
                return match.group(0) if part is None else str(part)
            return _PLACEHOLDER_RE.sub(replace, fmt)
        return fmt.replace('{value}', str(value))

    @staticmethod
    def validate(value, mapping):
        """List of validation errors for a raw value; empty when valid or absent."""
        rules = mapping.validation
        if not rules or value is None or value == '':
            return []

        errors = []
        if 'min' in rules or 'max' in rules:
            try:
                number = float(value)
            except (TypeError, ValueError):
                return [f'{mapping.element_type}: valeur numérique attendue']
            if 'min' in rules and number < rules['min']:
                errors.append(f"{mapping.element_type}: minimum {rules['min']}")
            if 'max' in rules and number > rules['max']:
                errors.append(f"{mapping.element_type}: maximum {rules['max']}")
        if 'enum' in rules and value not in rules['enum']:
            errors.append(f'{mapping.element_type}: valeur non autorisée')
        if 'pattern' in rules and not re.match(rules['pattern'], str(value)):
            errors.append(f'{mapping.element_type}: format invalide')
        if 'max_length' in rules and len(str(value)) > rules['max_length']:
            errors.append(f"{mapping.element_type}: {rules['max_length']} caractères maximum")
        return errors

    def resolve(self, element_type):
        mapping = get_mapping(element_type)
        return self.format_value(self.raw_value(mapping), mapping)

    def resolve_with_errors(self, element_type):
        """(value, errors) for ``element_type``."""
        mapping = get_mapping(element_type)
        raw = self.raw_value(mapping)
        return self.format_value(raw, mapping), self.validate(raw, mapping)

    def lookup(self, path):
        """Dotted path over the whole context, e.g. ``bulletin.general_average``."""
        return self.nested_value(self.context, path)

    @staticmethod
    def elements_by_category(category):
        return elements_by_category(category)

    @staticmethod
    def dependencies(element_type):
        return dependencies(element_type)
