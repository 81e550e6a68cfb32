"""
Bulletin template management and rendering.
"""
import copy
import logging
import numbers

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .mapping import STATIC_ELEMENT_TYPES, BulletinDataMapper, is_known_element
from .models import BulletinTemplate, BulletinTemplateVersion, default_global_styles

logger = logging.getLogger(__name__)

CONDITIONAL_OPERATORS = ('equals', 'not_equals', 'greater_than', 'less_than', 'contains')


class TemplateValidationError(Exception):

    def __init__(self, errors):
        super().__init__('; '.join(errors))
        self.errors = errors


def _is_number(value):
    return isinstance(value, numbers.Number) and not isinstance(value, bool)


def evaluate_condition(condition, mapper):
    """True when ``condition`` holds for the mapper's context (or is empty)."""
    if not condition:
        return True
    actual = mapper.lookup(condition.get('field', ''))
    expected = condition.get('value')
    operator = condition.get('operator', 'equals')

    if operator == 'equals':
        return actual == expected
    if operator == 'not_equals':
        return actual != expected
    if operator in ('greater_than', 'less_than'):
        try:
            actual_num, expected_num = float(actual), float(expected)
        except (TypeError, ValueError):
            return False
        return actual_num > expected_num if operator == 'greater_than' else actual_num < expected_num
    if operator == 'contains':
        if actual is None:
            return False
        if isinstance(actual, (list, tuple, dict)):
            return expected in actual
        return str(expected) in str(actual)
    return False


class TemplateService:

    @staticmethod
    def validate_elements(elements):
        """Raise TemplateValidationError listing every problem found."""
        if not isinstance(elements, list):
            raise TemplateValidationError(['La liste des éléments est invalide'])

        errors = []
        seen_ids = set()
        for index, element in enumerate(elements):
            label = f'Élément #{index + 1}'
            if not isinstance(element, dict):
                errors.append(f'{label}: objet attendu')
                continue

            element_id = element.get('id')
            if not element_id:
                errors.append(f'{label}: identifiant manquant')
            elif element_id in seen_ids:
                errors.append(f'{label}: identifiant dupliqué "{element_id}"')
            else:
                seen_ids.add(element_id)

            element_type = element.get('type')
            if not is_known_element(element_type):
                errors.append(f'{label}: type inconnu "{element_type}"')

            position = element.get('position')
            if not isinstance(position, dict):
                errors.append(f'{label}: position manquante')
            else:
                for key in ('x', 'y', 'width', 'height'):
                    if not _is_number(position.get(key)):
                        errors.append(f'{label}: position.{key} doit être numérique')
                for key in ('width', 'height'):
                    if _is_number(position.get(key)) and position[key] <= 0:
                        errors.append(f'{label}: position.{key} doit être positif')

            z_index = element.get('z_index', 0)
            if not isinstance(z_index, int) or isinstance(z_index, bool):
                errors.append(f'{label}: z_index doit être entier')

            properties = element.get('properties') or {}
            if not isinstance(properties, dict):
                errors.append(f'{label}: properties doit être un objet')
                continue
            conditional = properties.get('conditional')
            if conditional:
                if not isinstance(conditional, dict) or not conditional.get('field'):
                    errors.append(f'{label}: condition invalide')
                elif conditional.get('operator') not in CONDITIONAL_OPERATORS:
                    errors.append(f'{label}: opérateur inconnu "{conditional.get("operator")}"')

        if errors:
            raise TemplateValidationError(errors)

    @staticmethod
    def _snapshot(template, user=None, change_note=''):
        return BulletinTemplateVersion.objects.create(
            template=template,
            version=template.version,
            elements=copy.deepcopy(template.elements),
            global_styles=copy.deepcopy(template.global_styles),
            change_note=change_note[:255],
            created_by=user,
        )

    @staticmethod
    def _unset_other_defaults(template):
        BulletinTemplate.objects.filter(school=template.school, is_default=True).exclude(pk=template.pk).update(
            is_default=False,
        )

    @staticmethod
    @transaction.atomic
    def create_template(school, user, name, elements=None, global_styles=None, **fields):
        elements = elements or []
        TemplateService.validate_elements(elements)

        styles = default_global_styles()
        styles.update(global_styles or {})

        template = BulletinTemplate.objects.create(
            school=school,
            created_by=user,
            name=name,
            elements=elements,
            global_styles=styles,
            version=1,
            **fields,
        )
        TemplateService._snapshot(template, user, 'Version initiale')
        if template.is_default:
            TemplateService._unset_other_defaults(template)

        logger.info(f'Bulletin template {template.id} "{name}" created for school {school.id}')
        return template

    @staticmethod
    @transaction.atomic
    def update_template(template, user=None, change_note='', **fields):
        """
        Update a template. A change of elements or styles creates a new version.
        """
        template = BulletinTemplate.objects.select_for_update().get(pk=template.pk)

        if 'elements' in fields:
            TemplateService.validate_elements(fields['elements'])

        layout_changed = False
        for key in ('elements', 'global_styles'):
            if key in fields and fields[key] != getattr(template, key):
                layout_changed = True

        for key, value in fields.items():
            setattr(template, key, value)

        if layout_changed:
            template.version += 1
        template.save()

        if layout_changed:
            TemplateService._snapshot(template, user, change_note)
        if fields.get('is_default'):
            TemplateService._unset_other_defaults(template)
        return template

    @staticmethod
    @transaction.atomic
    def restore_version(template, version, user=None):
        """
        Bring back the layout of an older version as a new version.
        History is never rewritten.
        """
        snapshot = BulletinTemplateVersion.objects.get(template=template, version=version)
        template = BulletinTemplate.objects.select_for_update().get(pk=template.pk)

        template.elements = copy.deepcopy(snapshot.elements)
        template.global_styles = copy.deepcopy(snapshot.global_styles)
        template.version += 1
        template.save()

        TemplateService._snapshot(template, user, f'Restauration de la version {version}')
        return template

    @staticmethod
    @transaction.atomic
    def duplicate(template, name, user=None):
        clone = BulletinTemplate.objects.create(
            school=template.school,
            name=name,
            description=template.description,
            template_type=BulletinTemplate.TemplateType.CUSTOM,
            is_active=True,
            is_default=False,
            version=1,
            page_format=template.page_format,
            orientation=template.orientation,
            margins=copy.deepcopy(template.margins),
            elements=copy.deepcopy(template.elements),
            global_styles=copy.deepcopy(template.global_styles),
            created_by=user,
        )
        TemplateService._snapshot(clone, user, f'Copie de « {template.name} » v{template.version}')
        return clone

    @staticmethod
    @transaction.atomic
    def set_default(template):
        TemplateService._unset_other_defaults(template)
        template.is_default = True
        template.save(update_fields=['is_default', 'updated_at'])
        return template

    @staticmethod
    def default_for_school(school):
        return BulletinTemplate.objects.for_school(school).filter(is_active=True, is_default=True).first()

    @staticmethod
    def _resolve_element(element, mapper):
        element_type = element['type']
        properties = element.get('properties') or {}

        if element_type in STATIC_ELEMENT_TYPES:
            if element_type == 'school_logo':
                value = properties.get('src') or mapper.lookup('school.logo_url') or ''
            else:
                value = properties.get('content', properties.get('src', ''))
            return value, []

        return mapper.resolve_with_errors(element_type)

    @staticmethod
    def render(template, context=None, language='fr'):
        """
        Resolve every element of ``template`` against ``context``.

        Elements whose conditional is false are dropped; the rest are
        sorted by z_index.
        """
        mapper = BulletinDataMapper(context or {}, language)

        resolved = []
        for element in sorted(template.elements, key=lambda e: e.get('z_index', 0)):
            properties = element.get('properties') or {}
            if not evaluate_condition(properties.get('conditional'), mapper):
                continue
            value, errors = TemplateService._resolve_element(element, mapper)
            resolved.append({
                'id': element.get('id'),
                'type': element.get('type'),
                'category': element.get('category', ''),
                'position': element.get('position'),
                'properties': properties,
                'z_index': element.get('z_index', 0),
                'value': value,
                'valid': not errors,
                'errors': errors,
            })

        BulletinTemplate.objects.filter(pk=template.pk).update(
            usage_count=F('usage_count') + 1,
            last_used_at=timezone.now(),
        )

        return {
            'template_id': template.id,
            'version': template.version,
            'language': mapper.language,
            'page': {
                'format': template.page_format,
                'orientation': template.orientation,
                'margins': template.margins,
            },
            'styles': template.global_styles,
            'elements': resolved,
        }
