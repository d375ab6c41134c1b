import json
import re

import google.generativeai as genai
import structlog

logger = structlog.get_logger(__name__)

FUND_DETAIL_FIELDS = (
    'category', 'launch_date', 'aum', 'latest_nav', 'nav_date', 'fund_managers', 'benchmark',
    'risk', 'returns', 'top_holdings', 'top_sectors', 'min_investment', 'exit_load',
    'expense_ratio', 'tax',
)


class FundDetailsAgent:
    """Looks up public details of an Indian mutual fund scheme"""

    def __init__(self, api_key=None, model_name='gemini-2.5-flash'):
        self.model = None
        if api_key:
            genai.configure(api_key=api_key)
            self.model = genai.GenerativeModel(model_name)

    def get_fund_details(self, fund_name, fund_house_name):
        if not self.model:
            return self._unavailable(fund_name, fund_house_name, 'AI service is not configured')

        try:
            prompt = f"""
            Provide the latest publicly known details for the mutual fund scheme
            "{fund_name}" managed by "{fund_house_name}".

            Respond with a single JSON object only, using these keys:
            category, launch_date, aum, latest_nav, nav_date, fund_managers (list),
            benchmark, risk, returns (object with one_year, three_year, five_year),
            top_holdings (list), top_sectors (list), min_investment (object with
            lumpsum, sip), exit_load, expense_ratio (object with direct, regular),
            tax (object with stcg, ltcg).
            Use "N/A" for anything you do not know.
            """

            response = self.model.generate_content(prompt)
            details = self._parse_json(response.text)
            if details is None:
                return self._unavailable(fund_name, fund_house_name, 'Could not parse fund details')

            details = {key: details.get(key, 'N/A') for key in FUND_DETAIL_FIELDS}
            details.update({
                'fund_name': fund_name,
                'fund_house_name': fund_house_name,
                'available': True,
            })
            return details

        except Exception as e:
            logger.warning("fund_details_failed", fund_name=fund_name, error=str(e))
            return self._unavailable(fund_name, fund_house_name, 'Fund details lookup failed')

    def _parse_json(self, text):
        match = re.search(r'\{.*\}', text or '', re.DOTALL)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None

    def _unavailable(self, fund_name, fund_house_name, reason):
        details = {key: 'N/A' for key in FUND_DETAIL_FIELDS}
        details.update({
            'fund_name': fund_name,
            'fund_house_name': fund_house_name,
            'available': False,
            'message': reason,
        })
        return details
