"""
Subscription plan catalogue.

Prices are in FCFA (XAF). The catalogue is static: plans change with a
release, not from the admin.
"""
from dataclasses import dataclass, field

from dateutil.relativedelta import relativedelta

MONTHLY = 'monthly'
QUARTERLY = 'quarterly'
SEMESTER = 'semester'
YEARLY = 'yearly'

INTERVAL_MONTHS = {
    MONTHLY: 1,
    QUARTERLY: 3,
    SEMESTER: 6,
    YEARLY: 12,
}

CATEGORIES = ('parent', 'school', 'freelancer')


class PlanNotFoundError(Exception):
    pass


@dataclass(frozen=True)
class SubscriptionPlan:
    id: str
    name: str
    price: int
    interval: str
    category: str
    features: tuple = field(default_factory=tuple)
    currency: str = 'XAF'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'currency': self.currency,
            'interval': self.interval,
            'category': self.category,
            'features': list(self.features),
        }


_PARENT_PUBLIC = ('student_tracking', 'real_time_notifications', 'grade_access',
                  'teacher_communication', 'bilingual_support')
_PARENT_PRIVATE = ('student_tracking', 'real_time_notifications', 'advanced_gps',
                   'emergency_button', 'grade_access', 'priority_communication')
_PARENT_GPS = ('gps_tracking', 'safety_zones', 'real_time_alerts', 'location_history')

PLANS = (
    SubscriptionPlan('parent_public_monthly', 'Parent École Publique (Mensuel)', 1000, MONTHLY, 'parent',
                     _PARENT_PUBLIC),
    SubscriptionPlan('parent_public_quarterly', 'Parent École Publique (Trimestriel)', 3000, QUARTERLY, 'parent',
                     _PARENT_PUBLIC + ('quarterly_savings',)),
    SubscriptionPlan('parent_public_annual', 'Parent École Publique (Annuel)', 12000, YEARLY, 'parent',
                     _PARENT_PUBLIC + ('priority_support',)),
    SubscriptionPlan('parent_private_monthly', 'Parent École Privée (Mensuel)', 1500, MONTHLY, 'parent',
                     _PARENT_PRIVATE),
    SubscriptionPlan('parent_private_quarterly', 'Parent École Privée (Trimestriel)', 4500, QUARTERLY, 'parent',
                     _PARENT_PRIVATE + ('quarterly_savings',)),
    SubscriptionPlan('parent_private_annual', 'Parent École Privée (Annuel)', 18000, YEARLY, 'parent',
                     _PARENT_PRIVATE + ('premium_support',)),
    SubscriptionPlan('parent_geolocation_monthly', 'Parent GPS (Mensuel)', 1000, MONTHLY, 'parent',
                     _PARENT_GPS),
    SubscriptionPlan('parent_geolocation_annual', 'Parent GPS (Annuel)', 12000, YEARLY, 'parent',
                     _PARENT_GPS + ('advanced_analytics',)),

    SubscriptionPlan('school_public', 'École Publique', 50000, YEARLY, 'school',
                     ('unlimited_students', 'class_management', 'attendance_system', 'digital_reports',
                      'parent_communication', 'admin_dashboard')),
    SubscriptionPlan('school_private', 'École Privée', 75000, YEARLY, 'school',
                     ('unlimited_students', 'advanced_analytics', 'custom_reports', 'payment_processing',
                      'priority_support')),
    SubscriptionPlan('school_enterprise', 'École Entreprise', 150000, YEARLY, 'school',
                     ('unlimited_students', 'bilingual_dashboard', 'training_management', 'certification_system',
                      'enterprise_billing', 'dedicated_support')),
    SubscriptionPlan('school_geolocation', 'École GPS', 50000, YEARLY, 'school',
                     ('student_gps_tracking', 'school_zone_monitoring', 'safety_alerts', 'location_analytics')),
    SubscriptionPlan('school_public_complete', 'École Publique Complète', 90000, YEARLY, 'school',
                     ('unlimited_students', 'class_management', 'digital_reports', 'student_gps_tracking',
                      'online_classes')),
    SubscriptionPlan('school_private_complete', 'École Privée Complète', 115000, YEARLY, 'school',
                     ('unlimited_students', 'advanced_analytics', 'custom_reports', 'student_gps_tracking',
                      'online_classes', 'priority_support')),

    SubscriptionPlan('freelancer_professional_semester', 'Répétiteur Professionnel (Semestriel)', 12500, SEMESTER,
                     'freelancer',
                     ('tutoring_interface', 'schedule_management', 'student_tracking', 'parent_communication',
                      'billing_system', 'geolocation_tracking')),
    SubscriptionPlan('freelancer_professional_annual', 'Répétiteur Professionnel (Annuel)', 25000, YEARLY,
                     'freelancer',
                     ('tutoring_interface', 'schedule_management', 'student_tracking', 'parent_communication',
                      'billing_system', 'geolocation_tracking', 'priority_support')),
)

_BY_ID = {plan.id: plan for plan in PLANS}


def get_plan(plan_id):
    try:
        return _BY_ID[plan_id]
    except KeyError:
        raise PlanNotFoundError(f'Plan inconnu: {plan_id}')


def plans_for_category(category=None):
    if not category:
        return list(PLANS)
    return [plan for plan in PLANS if plan.category == category]


def add_interval(start, interval):
    """``start`` moved forward by one billing interval (calendar months)."""
    try:
        months = INTERVAL_MONTHS[interval]
    except KeyError:
        raise ValueError(f'Intervalle inconnu: {interval}')
    return start + relativedelta(months=months)
