from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from tenants.models import School, SchoolMembership

from . import grading
from .mapping import ELEMENT_MAPPINGS, BulletinDataMapper, UnknownElementError, elements_by_category
from .models import BulletinTemplate, BulletinTemplateVersion
from .services import TemplateService, TemplateValidationError

User = get_user_model()


def element(element_id, element_type, z_index=0, **properties):
    return {
        'id': element_id,
        'type': element_type,
        'category': '',
        'position': {'x': 10, 'y': 10, 'width': 100, 'height': 20},
        'properties': properties,
        'z_index': z_index,
    }


class GradingTests(SimpleTestCase):

    def test_round2_half_away_from_zero(self):
        self.assertEqual(grading.round2(12.345), 12.35)
        self.assertEqual(grading.round2(-12.345), -12.35)
        self.assertEqual(grading.round2(10.004), 10.0)
        self.assertIsNone(grading.round2(None))

    def test_subject_average(self):
        self.assertEqual(grading.subject_term_average(12, 14), 13.4)
        self.assertEqual(grading.subject_term_average(None, 15), 15)
        self.assertEqual(grading.subject_term_average(9.5, None), 9.5)
        self.assertIsNone(grading.subject_term_average(None, None))

    def test_out_of_range_mark(self):
        with self.assertRaises(grading.GradingError):
            grading.subject_term_average(21, 10)
        with self.assertRaises(grading.GradingError):
            grading.assert_in_range_or_none(-1, 'Maths')

    def test_term_average_is_coefficient_weighted(self):
        subjects = [
            {'code': 'MATH', 'coefficient': 4, 'cc': 15, 'exam': 15},
            {'code': 'FR', 'coefficient': 2, 'cc': 9, 'exam': 9},
            {'code': 'EPS', 'coefficient': 1, 'cc': None, 'exam': None},
        ]
        # (15*4 + 9*2) / 6
        self.assertEqual(grading.term_average(subjects), 13.0)

    def test_term_average_none(self):
        self.assertIsNone(grading.term_average([{'cc': None, 'exam': None, 'coefficient': 2}]))
        self.assertIsNone(grading.term_average([{'cc': 12, 'exam': 12, 'coefficient': 0}]))

    def test_annual_average_skips_missing_terms(self):
        self.assertEqual(grading.annual_average({'T1': 12, 'T2': 14, 'T3': None}), 13.0)
        self.assertIsNone(grading.annual_average({}))

    def test_appreciation_thresholds(self):
        self.assertEqual(grading.appreciation(18), 'Excellent')
        self.assertEqual(grading.appreciation(16.5), 'Très bien')
        self.assertEqual(grading.appreciation(12, 'en'), 'Fairly good')
        self.assertEqual(grading.appreciation(10), 'Passable')
        self.assertEqual(grading.appreciation(7.99), 'Faible')
        self.assertEqual(grading.appreciation(None, 'en'), 'Not evaluated')

    def test_class_statistics(self):
        stats = grading.class_statistics([12.5, None, 8, 15])
        self.assertEqual(stats, {'min': 8, 'max': 15, 'mean': 11.83, 'size': 3})
        self.assertEqual(grading.class_statistics([None])['size'], 0)

    def test_competition_ranking(self):
        ranks = grading.rank_students({'a': 14, 'b': 16, 'c': 14, 'd': 10, 'e': None})
        self.assertEqual(ranks, {'a': 2, 'b': 1, 'c': 2, 'd': 4, 'e': None})

    def test_generate_bulletin(self):
        bulletin = grading.generate_bulletin(
            {'id': 7, 'name': 'Aminata Ngo'},
            [
                {'code': 'MATH', 'name': 'Mathématiques', 'coefficient': 4, 'cc': 16, 'exam': 14},
                {'code': 'ANG', 'name': 'Anglais', 'coefficient': 2, 'cc': 12, 'exam': None},
            ],
            'T1',
            class_averages={'3': 15.1, '9': 11},
        )
        # MATH 14.6 * 4 + ANG 12 * 2 = 82.4 over 6
        self.assertEqual(bulletin['term_average'], 13.73)
        self.assertEqual(bulletin['subjects'][0]['average'], 14.6)
        self.assertEqual(bulletin['subjects'][0]['points'], 58.4)
        self.assertEqual(bulletin['rank'], 2)
        self.assertEqual(bulletin['class_statistics']['size'], 3)
        self.assertEqual(bulletin['appreciation'], 'Assez bien')

    def test_unknown_term(self):
        with self.assertRaises(grading.GradingError):
            grading.generate_bulletin({}, [], 'T4')


class MappingTests(SimpleTestCase):

    def setUp(self):
        self.mapper = BulletinDataMapper({
            'bulletin': {
                'term': 'T2', 'academic_year': '2025-2026', 'general_average': 14.5,
                'rank': 3, 'class_size': 42, 'parent_visa': {'date': '2026-03-20'},
            },
            'student': {'first_name': 'Aminata', 'last_name': 'NGO', 'matricule': 'LJ-2026-014'},
            'class': {'name': '3e A', 'class_average': 25},
            'school': {'name': 'Lycée Joss'},
        })

    def test_composite_field_format(self):
        self.assertEqual(self.mapper.resolve('student_name'), 'NGO Aminata')
        self.assertEqual(self.mapper.resolve('bulletin_title'), 'BULLETIN SCOLAIRE - T2 2025-2026')
        self.assertEqual(self.mapper.resolve('class_rank'), '3e/42')

    def test_scalar_format_and_fallback(self):
        self.assertEqual(self.mapper.resolve('general_average'), '14.5/20')
        self.assertEqual(self.mapper.resolve('school_phone'), '')
        self.assertEqual(self.mapper.resolve('ctba_value'), '--')

    def test_nested_path_and_date(self):
        self.assertEqual(self.mapper.resolve('parent_visa_date'), '20/03/2026')

    def test_multilingual(self):
        mapper = BulletinDataMapper(self.mapper.context, language='en')
        self.assertEqual(mapper.resolve('term_semester'), 'Term: T2')
        self.assertTrue(mapper.resolve('footer_notice').startswith('Keep this report card'))

    def test_validation(self):
        value, errors = self.mapper.resolve_with_errors('class_average')
        self.assertEqual(value, '25/20')
        self.assertEqual(errors, ['class_average: maximum 20'])
        self.assertEqual(self.mapper.resolve_with_errors('student_matricule')[1], [])
        self.assertEqual(
            BulletinDataMapper.validate('Z', ELEMENT_MAPPINGS['cote_value']),
            ['cote_value: valeur non autorisée'],
        )

    def test_unknown_element(self):
        with self.assertRaises(UnknownElementError):
            self.mapper.resolve('hologram')

    def test_catalogue_by_category(self):
        types = [m.element_type for m in elements_by_category('signatures')]
        self.assertIn('headmaster_signature', types)
        self.assertEqual(BulletinDataMapper.dependencies('class_rank'), ['total_students'])


class TemplateServiceTests(TestCase):

    def setUp(self):
        self.director = User.objects.create_user(email='dir@joss.cm', password='pass', role='director')
        self.school = School.objects.create(slug='lycee-joss', name='Lycée Joss', owner=self.director)
        self.elements = [
            element('title', 'bulletin_title', z_index=1),
            element('name', 'student_name', z_index=2),
            element('logo', 'school_logo', z_index=0, src='/media/logo.png'),
        ]

    def test_validate_elements_collects_errors(self):
        bad = [
            element('a', 'student_name'),
            element('a', 'hologram'),
            {**element('c', 'text'), 'position': {'x': 0, 'y': 0, 'width': 0, 'height': 'big'}},
            element('d', 'general_average', conditional={'field': 'bulletin.rank', 'operator': 'between'}),
        ]
        with self.assertRaises(TemplateValidationError) as ctx:
            TemplateService.validate_elements(bad)
        messages = ' | '.join(ctx.exception.errors)
        self.assertIn('dupliqué', messages)
        self.assertIn('hologram', messages)
        self.assertIn('position.width doit être positif', messages)
        self.assertIn('position.height doit être numérique', messages)
        self.assertIn('between', messages)

    def test_create_stores_version_one(self):
        template = TemplateService.create_template(self.school, self.director, 'Standard', self.elements)
        self.assertEqual(template.version, 1)
        self.assertEqual(template.global_styles['font_family'], 'Arial')
        self.assertEqual(template.global_styles['line_height'], 1.4)
        self.assertEqual(template.versions.count(), 1)

    def test_single_default_per_school(self):
        first = TemplateService.create_template(self.school, self.director, 'A', is_default=True)
        second = TemplateService.create_template(self.school, self.director, 'B', is_default=True)
        first.refresh_from_db()
        self.assertFalse(first.is_default)
        self.assertTrue(second.is_default)

        TemplateService.set_default(first)
        second.refresh_from_db()
        self.assertFalse(second.is_default)
        self.assertEqual(TemplateService.default_for_school(self.school), first)

    def test_update_bumps_version_only_on_layout_change(self):
        template = TemplateService.create_template(self.school, self.director, 'Standard', self.elements)

        template = TemplateService.update_template(template, self.director, name='Standard 2026')
        self.assertEqual(template.version, 1)

        template = TemplateService.update_template(
            template, self.director, 'Sans logo', elements=self.elements[:2],
        )
        self.assertEqual(template.version, 2)
        self.assertEqual(template.versions.get(version=2).change_note, 'Sans logo')

    def test_restore_creates_new_version(self):
        template = TemplateService.create_template(self.school, self.director, 'Standard', self.elements)
        template = TemplateService.update_template(template, self.director, elements=[])

        template = TemplateService.restore_version(template, 1, self.director)
        self.assertEqual(template.version, 3)
        self.assertEqual(len(template.elements), 3)
        self.assertEqual(list(template.versions.values_list('version', flat=True)), [3, 2, 1])

    def test_duplicate(self):
        template = TemplateService.create_template(self.school, self.director, 'Standard', self.elements,
                                                   is_default=True)
        clone = TemplateService.duplicate(template, 'Standard (copie)', self.director)
        self.assertNotEqual(clone.pk, template.pk)
        self.assertFalse(clone.is_default)
        self.assertEqual(clone.version, 1)
        self.assertEqual(clone.elements, template.elements)

    def test_render(self):
        elements = self.elements + [
            element('mention', 'class_council_mentions', z_index=3,
                    conditional={'field': 'bulletin.general_average', 'operator': 'greater_than', 'value': 16}),
            element('warn', 'conduct_warning', z_index=4,
                    conditional={'field': 'bulletin.conduct_warning', 'operator': 'equals', 'value': True}),
        ]
        template = TemplateService.create_template(self.school, self.director, 'Standard', elements)
        context = {
            'bulletin': {'term': 'T1', 'academic_year': '2025-2026', 'general_average': 17,
                         'class_council_mentions': 'Félicitations', 'conduct_warning': False},
            'student': {'first_name': 'Aminata', 'last_name': 'NGO'},
        }

        layout = TemplateService.render(template, context, 'fr')

        self.assertEqual([e['id'] for e in layout['elements']], ['logo', 'title', 'name', 'mention'])
        self.assertEqual(layout['elements'][0]['value'], '/media/logo.png')
        self.assertEqual(layout['elements'][2]['value'], 'NGO Aminata')
        self.assertTrue(all(e['valid'] for e in layout['elements']))
        self.assertEqual(layout['page']['format'], 'A4')

        template.refresh_from_db()
        self.assertEqual(template.usage_count, 1)
        self.assertIsNotNone(template.last_used_at)


class BulletinsAPITests(TestCase):

    def setUp(self):
        self.director = User.objects.create_user(email='dir@joss.cm', password='pass', role='director')
        self.teacher = User.objects.create_user(email='prof@joss.cm', password='pass', role='teacher')
        self.parent = User.objects.create_user(email='parent@joss.cm', password='pass', role='parent')
        self.school = School.objects.create(slug='lycee-joss', name='Lycée Joss', owner=self.director)
        for user, role in ((self.director, 'director'), (self.teacher, 'teacher'), (self.parent, 'parent')):
            SchoolMembership.objects.create(school=self.school, user=user, role=role)
        self.client = APIClient()

    def create_template(self):
        return TemplateService.create_template(
            self.school, self.director, 'Standard', [element('name', 'student_name')],
        )

    def test_director_creates_template(self):
        self.client.force_authenticate(self.director)
        response = self.client.post('/api/bulletins/templates/', {
            'name': 'Trimestriel',
            'elements': [element('avg', 'general_average')],
            'global_styles': {'font_size': 11},
        }, format='json')
        self.assertEqual(response.status_code, 201, response.data)
        template = BulletinTemplate.objects.get(pk=response.data['id'])
        self.assertEqual(template.school, self.school)
        self.assertEqual(template.global_styles['font_size'], 11)
        self.assertEqual(template.global_styles['font_family'], 'Arial')

    def test_invalid_elements_rejected(self):
        self.client.force_authenticate(self.director)
        response = self.client.post('/api/bulletins/templates/', {
            'name': 'Cassé', 'elements': [element('x', 'hologram')],
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('elements', response.data)

    def test_teacher_reads_but_cannot_write(self):
        template = self.create_template()
        self.client.force_authenticate(self.teacher)
        self.assertEqual(self.client.get('/api/bulletins/templates/').status_code, 200)
        response = self.client.patch(f'/api/bulletins/templates/{template.id}/', {'name': 'X'}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_parent_cannot_list(self):
        self.client.force_authenticate(self.parent)
        self.assertEqual(self.client.get('/api/bulletins/templates/').status_code, 403)

    def test_patch_elements_versions(self):
        template = self.create_template()
        self.client.force_authenticate(self.director)
        response = self.client.patch(f'/api/bulletins/templates/{template.id}/', {
            'elements': [element('name', 'student_name'), element('cls', 'student_class')],
            'change_note': 'Ajout classe',
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['version'], 2)

        versions = self.client.get(f'/api/bulletins/templates/{template.id}/versions/').data
        self.assertEqual([v['version'] for v in versions], [2, 1])
        self.assertEqual(versions[0]['change_note'], 'Ajout classe')

    def test_restore_missing_version(self):
        template = self.create_template()
        self.client.force_authenticate(self.director)
        response = self.client.post(f'/api/bulletins/templates/{template.id}/restore/', {'version': 9}, format='json')
        self.assertEqual(response.status_code, 404)

    def test_duplicate_and_set_default(self):
        template = self.create_template()
        self.client.force_authenticate(self.director)
        response = self.client.post(f'/api/bulletins/templates/{template.id}/duplicate/', {'name': 'Copie'},
                                    format='json')
        self.assertEqual(response.status_code, 201)

        clone_id = response.data['id']
        response = self.client.post(f'/api/bulletins/templates/{clone_id}/set-default/')
        self.assertTrue(response.data['is_default'])
        self.assertEqual(BulletinTemplateVersion.objects.filter(template_id=clone_id).count(), 1)

    def test_teacher_renders_template(self):
        template = self.create_template()
        self.client.force_authenticate(self.teacher)
        response = self.client.post(f'/api/bulletins/templates/{template.id}/render/', {
            'context': {'student': {'first_name': 'Paul', 'last_name': 'ETOA'}},
            'language': 'en',
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['elements'][0]['value'], 'ETOA Paul')
        self.assertEqual(response.data['language'], 'en')

    def test_element_types_filter(self):
        self.client.force_authenticate(self.parent)
        response = self.client.get('/api/bulletins/element-types/', {'category': 'attendance'})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(all(e['category'] == 'attendance' for e in response.data['elements']))
        self.assertEqual(self.client.get('/api/bulletins/element-types/', {'category': 'x'}).status_code, 400)

    def test_compute(self):
        self.client.force_authenticate(self.teacher)
        response = self.client.post('/api/bulletins/compute/', {
            'student': {'id': 1, 'name': 'Paul Etoa'},
            'term': 'T2',
            'subjects': [
                {'code': 'MATH', 'coefficient': 5, 'cc': 10, 'exam': 12},
                {'code': 'HIST', 'coefficient': 2, 'exam': 8},
            ],
            'language': 'en',
        }, format='json')
        self.assertEqual(response.status_code, 200, response.data)
        # (11.4*5 + 8*2) / 7 = 10.43
        self.assertEqual(response.data['term_average'], 10.43)
        self.assertEqual(response.data['appreciation'], 'Average')
        self.assertEqual(response.data['rank'], 1)

    def test_compute_rejects_out_of_range(self):
        self.client.force_authenticate(self.teacher)
        response = self.client.post('/api/bulletins/compute/', {
            'term': 'T1', 'subjects': [{'code': 'MATH', 'cc': 25, 'exam': 12}],
        }, format='json')
        self.assertEqual(response.status_code, 400)
