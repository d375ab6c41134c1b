import json

import google.generativeai as genai
import structlog

from advisor_platform.utils.calculations import debt_strategy, goal_analysis, financial_summary

logger = structlog.get_logger(__name__)


class PlanAnalysisAgent:
    """Debt and goal analysis: rule-based numbers plus an optional Gemini narrative"""

    def __init__(self, api_key=None, model_name='gemini-2.5-flash'):
        self.model = None
        if api_key:
            genai.configure(api_key=api_key)
            self.model = genai.GenerativeModel(model_name)

    def analyze_debt(self, client_data):
        """Avalanche debt strategy with recommendations"""
        result = debt_strategy(client_data)
        metrics = result['financial_metrics']

        insights = None
        if self.model and result['debt_strategy']['prioritized_debts']:
            insights = self._generate_debt_insights(result, client_data)

        result['recommendations'] = insights or self._fallback_debt_recommendations(result)
        result['ai_generated'] = insights is not None
        logger.info("debt_analysis_completed", debts=len(result['debt_strategy']['prioritized_debts']),
                    debt_health=metrics['debt_health'], ai_generated=result['ai_generated'])
        return result

    def _generate_debt_insights(self, result, client_data):
        try:
            prompt = f"""
            You are a certified financial planner in India. Review this client's debt position
            and the avalanche repayment order computed for it.

            Monthly cash flow: {json.dumps(financial_summary(client_data))}
            Prioritized debts: {json.dumps(result['debt_strategy']['prioritized_debts'])}
            Metrics: {json.dumps(result['financial_metrics'])}

            Respond with one recommendation per line, prefixed with "- ".
            Give at most 6 short, actionable recommendations.
            """

            response = self.model.generate_content(prompt)
            lines = [line.strip().lstrip('-').strip() for line in response.text.splitlines()]
            recommendations = [line for line in lines if line]
            return recommendations[:6] or None

        except Exception as e:
            logger.warning("debt_insights_failed", error=str(e))
            return None

    def _fallback_debt_recommendations(self, result):
        metrics = result['financial_metrics']
        debts = result['debt_strategy']['prioritized_debts']
        recommendations = []

        if not debts:
            return ['No outstanding debts recorded. Direct surplus towards investments and goals.']

        first = debts[0]
        recommendations.append(
            f"Prioritize prepaying {first['debt_type']} at {first['interest_rate']}% interest first."
        )
        if metrics['available_surplus'] > 0:
            recommendations.append(
                f"Apply the monthly surplus of {metrics['available_surplus']:,.0f} as extra payment "
                f"to save about {metrics['total_interest_savings']:,.0f} in interest over a year."
            )
        if metrics['debt_health'] in ('high', 'critical'):
            recommendations.append('EMIs exceed 40% of income. Avoid new borrowing and consider consolidation.')
        elif metrics['debt_health'] == 'moderate':
            recommendations.append('Keep EMIs below 30% of income before taking new loans.')
        if any(d['interest_rate'] >= 18 for d in debts):
            recommendations.append('Clear credit card or personal loan balances above 18% interest immediately.')
        return recommendations

    def analyze_goals(self, selected_goals, client_data):
        """Inflation-adjusted goal sizing with feasibility against surplus"""
        result = goal_analysis(selected_goals, client_data)

        if result['shortfall'] > 0:
            result['recommendations'] = [
                f"Required SIPs exceed surplus by {result['shortfall']:,.0f} per month.",
                'Extend time horizons on lower-priority goals or increase monthly savings.',
            ]
        else:
            result['recommendations'] = ['All selected goals are achievable with the current surplus.']
        return result

    def generate_plan_recommendations(self, plan_data, client_data):
        """Free-form plan recommendations stored on the plan"""
        summary = financial_summary(client_data)
        fallback = self._fallback_plan_recommendations(summary)

        if not self.model:
            return {'recommendations': fallback, 'ai_generated': False}

        try:
            prompt = f"""
            You are a financial advisor. Based on this client's cash flow and plan, list
            prioritized recommendations, one per line prefixed with "- ".

            Cash flow summary: {json.dumps(summary)}
            Plan data: {json.dumps(plan_data, default=str)}
            """
            response = self.model.generate_content(prompt)
            lines = [line.strip().lstrip('-').strip() for line in response.text.splitlines()]
            recommendations = [line for line in lines if line]
            if recommendations:
                return {'recommendations': recommendations, 'ai_generated': True}

        except Exception as e:
            logger.warning("plan_recommendations_failed", error=str(e))

        return {'recommendations': fallback, 'ai_generated': False}

    def _fallback_plan_recommendations(self, summary):
        recommendations = []
        if summary['monthly_surplus'] <= 0:
            recommendations.append('Expenses exceed income. Review discretionary spending first.')
        if summary['savings_rate'] < 20:
            recommendations.append('Aim for a savings rate of at least 20% of income.')
        if summary['total_liabilities'] > 0:
            recommendations.append('Follow the debt repayment order before increasing investments.')
        recommendations.append('Maintain an emergency fund covering 6 months of expenses.')
        return recommendations
