# ============================================================================
# CALCULATIONS.PY - Financial arithmetic shared by routes and agents
# ============================================================================

LONG_TERM_TAX_RATE = 10
SHORT_TERM_TAX_RATE = 15

DEFAULT_INFLATION_RATE = 0.06
DEFAULT_EXPECTED_RETURN = 0.12

# A holding (fund, property, account) records its worth under one of these;
# its other numbers (units, nav, rates) are not amounts
HOLDING_VALUE_KEYS = ('current_value', 'market_value', 'value', 'amount')


def to_number(value, default=0.0):
    """Coerce form values ('1,20,000', None, 5) to float"""
    if value is None or value == '':
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(',', '').strip())
    except ValueError:
        return default


# ============================================================================
# TAX
# ============================================================================

def calculate_tax(current_value, holding_period):
    """Exit tax: 10% of value for long-term holdings, 15% for short-term"""
    rate = LONG_TERM_TAX_RATE if holding_period == 'long_term' else SHORT_TERM_TAX_RATE
    return {
        'tax_rate': rate,
        'tax_amount': (to_number(current_value) * rate) / 100,
    }


def net_benefit_percentage(net_benefit, current_value):
    current_value = to_number(current_value)
    if current_value > 0:
        return (to_number(net_benefit) / current_value) * 100
    return 0


# ============================================================================
# CLIENT FINANCIAL SUMMARY
# ============================================================================

def financial_summary(client):
    """Monthly cash flow and net worth from a client document"""
    financials = client.get('financials') or {}
    assets = client.get('assets') or {}
    debts = client.get('debts_and_liabilities') or {}

    annual_income = to_number(financials.get('annual_income')) + to_number(financials.get('additional_income'))
    monthly_income = annual_income / 12
    monthly_expenses = to_number(financials.get('monthly_expenses'))
    annual_extras = to_number(financials.get('annual_taxes')) + to_number(financials.get('annual_vacation_expenses'))
    total_monthly_expenses = monthly_expenses + annual_extras / 12

    monthly_surplus = monthly_income - total_monthly_expenses
    savings_rate = (monthly_surplus / monthly_income * 100) if monthly_income > 0 else 0

    total_assets = sum(to_number(v) for v in _flatten_amounts(assets))
    total_liabilities = sum(to_number(d.get('outstanding_amount')) for d in _debt_list(debts))
    total_emi = sum(to_number(d.get('monthly_emi')) for d in _debt_list(debts))

    return {
        'monthly_income': round(monthly_income, 2),
        'monthly_expenses': round(total_monthly_expenses, 2),
        'monthly_surplus': round(monthly_surplus, 2),
        'savings_rate': round(savings_rate, 2),
        'total_assets': round(total_assets, 2),
        'total_liabilities': round(total_liabilities, 2),
        'net_worth': round(total_assets - total_liabilities, 2),
        'total_monthly_emi': round(total_emi, 2),
    }


def _flatten_amounts(value):
    """Rupee amounts under an assets section; holdings count only their value field"""
    if isinstance(value, dict):
        for key in HOLDING_VALUE_KEYS:
            if key in value:
                yield to_number(value[key])
                return
        for item in value.values():
            yield from _flatten_amounts(item)
    elif isinstance(value, list):
        for item in value:
            yield from _flatten_amounts(item)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        yield value


def _debt_list(debts):
    """Debts arrive either as a list or as {'home_loan': {...}, ...}"""
    if isinstance(debts, list):
        return [d for d in debts if isinstance(d, dict)]
    if isinstance(debts, dict):
        items = []
        for name, debt in debts.items():
            if isinstance(debt, dict):
                items.append({'debt_type': name, **debt})
        return items
    return []


# ============================================================================
# DEBT STRATEGY
# ============================================================================

def debt_strategy(client_data):
    """
    Avalanche prioritisation: highest interest rate first.

    Monthly surplus above EMIs is applied to the first debt; interest
    saved is estimated as one year of interest on the prepaid amount.
    """
    debts = [d for d in _debt_list(client_data.get('debts_and_liabilities'))
             if to_number(d.get('outstanding_amount')) > 0]
    summary = financial_summary(client_data)

    prioritized = sorted(debts, key=lambda d: to_number(d.get('interest_rate')), reverse=True)
    total_emi = sum(to_number(d.get('monthly_emi')) for d in prioritized)
    monthly_income = summary['monthly_income']
    surplus = max(0.0, summary['monthly_surplus'] - total_emi)

    prioritized_debts = []
    total_interest_savings = 0.0
    for index, debt in enumerate(prioritized):
        outstanding = to_number(debt.get('outstanding_amount'))
        rate = to_number(debt.get('interest_rate'))
        extra = surplus if index == 0 else 0.0
        prepaid = min(outstanding, extra * 12)
        savings = prepaid * rate / 100
        total_interest_savings += savings
        prioritized_debts.append({
            'debt_type': debt.get('debt_type', 'debt'),
            'outstanding_amount': outstanding,
            'interest_rate': rate,
            'monthly_emi': to_number(debt.get('monthly_emi')),
            'priority_rank': index + 1,
            'recommended_extra_payment': round(extra, 2),
            'projected_interest_savings': round(savings, 2),
        })

    dti = (total_emi / monthly_income * 100) if monthly_income > 0 else 0
    if dti > 50:
        health = 'critical'
    elif dti > 40:
        health = 'high'
    elif dti > 30:
        health = 'moderate'
    else:
        health = 'healthy'

    return {
        'debt_strategy': {
            'method': 'avalanche',
            'prioritized_debts': prioritized_debts,
        },
        'financial_metrics': {
            'total_debt': round(sum(to_number(d.get('outstanding_amount')) for d in prioritized), 2),
            'total_emi': round(total_emi, 2),
            'debt_to_income_ratio': round(dti, 2),
            'available_surplus': round(surplus, 2),
            'total_interest_savings': round(total_interest_savings, 2),
            'debt_health': health,
        },
    }


# ============================================================================
# GOAL PLANNING
# ============================================================================

def future_value(amount, years, rate=DEFAULT_INFLATION_RATE):
    return to_number(amount) * ((1 + rate) ** max(0, years))


def required_monthly_sip(target, years, annual_return=DEFAULT_EXPECTED_RETURN):
    """Monthly SIP reaching target in the given years (end-of-month contributions)"""
    months = int(round(max(0, years) * 12))
    target = to_number(target)
    if months <= 0:
        return target
    monthly_rate = annual_return / 12
    if monthly_rate == 0:
        return target / months
    return target * monthly_rate / (((1 + monthly_rate) ** months) - 1)


def goal_analysis(selected_goals, client_data):
    """Inflate each goal target and size the SIP needed against the monthly surplus"""
    summary = financial_summary(client_data or {})
    surplus = max(0.0, summary['monthly_surplus'] - summary['total_monthly_emi'])

    goals = []
    total_sip = 0.0
    for goal in selected_goals or []:
        years = to_number(goal.get('time_horizon') or goal.get('years'), default=0)
        target = to_number(goal.get('target_amount'))
        inflated = future_value(target, years)
        sip = required_monthly_sip(inflated, years)
        total_sip += sip
        goals.append({
            'title': goal.get('title') or goal.get('type') or 'Goal',
            'target_amount': target,
            'time_horizon': years,
            'inflation_adjusted_target': round(inflated, 2),
            'required_monthly_sip': round(sip, 2),
        })

    remaining = surplus
    for goal in sorted(goals, key=lambda g: g['time_horizon']):
        goal['feasible'] = goal['required_monthly_sip'] <= remaining
        if goal['feasible']:
            remaining -= goal['required_monthly_sip']

    return {
        'goals': goals,
        'total_required_sip': round(total_sip, 2),
        'available_monthly_surplus': round(surplus, 2),
        'shortfall': round(max(0.0, total_sip - surplus), 2),
        'assumptions': {
            'inflation_rate': DEFAULT_INFLATION_RATE,
            'expected_return': DEFAULT_EXPECTED_RETURN,
        },
    }
