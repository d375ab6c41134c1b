from advisor_platform.models.base import MongoModel
from advisor_platform.utils.calculations import financial_summary, to_number
from advisor_platform.utils.dates import utcnow

ESTATE_SECTIONS = (
    'family_structure', 'real_estate_properties', 'legal_documents_status',
    'personal_assets', 'estate_preferences', 'healthcare_directives', 'estate_metadata',
)
WILL_TYPES = ('registered', 'unregistered', 'notarized')

# (label, path inside the document) for the legal document checklist
DOCUMENT_CHECKLIST = (
    ('will', ('legal_documents_status', 'will_details', 'has_will')),
    ('power_of_attorney', ('legal_documents_status', 'power_of_attorney', 'has_poa')),
    ('nominations', ('legal_documents_status', 'nominations', 'all_updated')),
    ('healthcare_directive', ('healthcare_directives', 'has_living_will')),
    ('guardianship', ('estate_preferences', 'guardianship', 'guardian_appointed')),
)


def _dig(data, path):
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class EstateInformation(MongoModel):
    collection_name = 'estate_information'
    fields = ('client_id', 'advisor_id') + ESTATE_SECTIONS + ('will',)

    def __init__(self, client_id, advisor_id, **values):
        super().__init__(client_id=client_id, advisor_id=advisor_id, **values)
        for section in ESTATE_SECTIONS:
            if getattr(self, section) is None:
                setattr(self, section, [] if section == 'real_estate_properties' else {})

    @staticmethod
    def find_by_client(client_id):
        return EstateInformation.find_one({'client_id': client_id})

    def update_sections(self, data):
        """Replace the sections present in data; others are kept"""
        updated = []
        for section in ESTATE_SECTIONS:
            if section in data and data[section] is not None:
                setattr(self, section, data[section])
                updated.append(section)
        self.save()
        return updated

    def save_will(self, will_data):
        self.will = {**(self.will or {}), **will_data, 'last_updated': utcnow()}
        details = self.legal_documents_status.setdefault('will_details', {})
        details['has_will'] = True
        if will_data.get('will_type') in WILL_TYPES:
            details['will_type'] = will_data['will_type']
        details['last_updated'] = self.will['last_updated']
        return self.save()

    def documents_status(self):
        completed = [label for label, path in DOCUMENT_CHECKLIST if _dig(self.to_document(), path) is True]
        return {
            'completed': completed,
            'missing': [label for label, _ in DOCUMENT_CHECKLIST if label not in completed],
            'completion_ratio': round(len(completed) / len(DOCUMENT_CHECKLIST), 2),
        }

    def real_estate_value(self):
        total = 0.0
        for prop in self.real_estate_properties or []:
            value = to_number(_dig(prop, ('financial_details', 'current_market_value')))
            share = to_number(_dig(prop, ('ownership_details', 'ownership_percentage')), default=100.0)
            total += value * share / 100
        return total

    def property_loans(self):
        return sum(
            to_number(_dig(prop, ('property_loan', 'outstanding_amount')))
            for prop in self.real_estate_properties or []
        )


def estate_summary(client, estate=None):
    """Net estate value, document completion and recommendations for a client"""
    client_data = client.to_document()
    finances = financial_summary(client_data)

    real_estate = estate.real_estate_value() if estate else 0.0
    property_loans = estate.property_loans() if estate else 0.0
    gross_estate = finances['total_assets'] + real_estate + client.portfolio_value()
    liabilities = finances['total_liabilities'] + property_loans
    net_estate = gross_estate - liabilities

    documents = estate.documents_status() if estate else {
        'completed': [],
        'missing': [label for label, _ in DOCUMENT_CHECKLIST],
        'completion_ratio': 0.0,
    }

    return {
        'gross_estate_value': round(gross_estate, 2),
        'total_liabilities': round(liabilities, 2),
        'net_estate_value': round(net_estate, 2),
        'documents': documents,
        'recommendations': estate_recommendations(client_data, finances, gross_estate, liabilities, documents),
    }


def estate_recommendations(client_data, finances, gross_estate, liabilities, documents):
    recommendations = {
        'immediate_actions': [],
        'short_term_goals': [],
        'long_term_goals': [],
        'risk_mitigation': [],
        'tax_optimization': [],
        'estate_protection': [],
    }

    if gross_estate == 0:
        recommendations['immediate_actions'].append(
            'Start building emergency fund equivalent to 6 months of expenses')
    if liabilities > 0:
        recommendations['immediate_actions'].append('Review and prioritize debt repayment strategy')
    if not client_data.get('pan_number'):
        recommendations['immediate_actions'].append('Complete KYC documentation including PAN card')

    if finances['monthly_surplus'] <= 0:
        recommendations['short_term_goals'].append('Reduce monthly expenses to create an investable surplus')

    if not (client_data.get('cas_data') or {}).get('parsed_data'):
        recommendations['long_term_goals'].append('Start systematic investment plan for wealth creation')

    if gross_estate and liabilities > gross_estate * 0.5:
        recommendations['risk_mitigation'].append('High debt-to-asset ratio - focus on debt reduction')

    if finances['monthly_income'] * 12 > 1000000:
        recommendations['tax_optimization'].append(
            'Explore advanced tax planning strategies for high-income individuals')

    if 'will' in documents['missing']:
        recommendations['estate_protection'].append('Consider creating a will and estate plan')
    if 'nominations' in documents['missing']:
        recommendations['estate_protection'].append('Review beneficiary nominations on all investments')
    if gross_estate > 5000000:
        recommendations['estate_protection'].append(
            'Consider estate planning strategies to minimize inheritance tax')

    return recommendations
