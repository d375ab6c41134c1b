import re

import google.generativeai as genai
import structlog

logger = structlog.get_logger(__name__)

ACTION_KEYWORDS = ['will', 'need to', 'should', 'follow up', 'send', 'schedule', 'prepare', 'review', 'submit']
DECISION_KEYWORDS = ['decided', 'agreed', 'will go with', 'finalize', 'approve', 'confirmed']
KEY_POINT_KEYWORDS = ['goal', 'invest', 'retire', 'loan', 'sip', 'portfolio', 'risk', 'tax', 'insurance', 'income']


class TranscriptSummaryAgent:
    def __init__(self, api_key=None, model_name='gemini-2.5-flash'):
        self.model = None
        if api_key:
            genai.configure(api_key=api_key)
            self.model = genai.GenerativeModel(model_name)

    def summarize(self, transcript):
        """Key points, action items and decisions from a meeting transcript"""
        if self.model:
            try:
                prompt = f"""
                Summarize this meeting between a financial advisor and their client.

                Respond in exactly this format:
                KEY POINTS: [point 1] | [point 2] | ...
                ACTION ITEMS: [item 1] | [item 2] | ...
                DECISIONS: [decision 1] | [decision 2] | ...

                Transcript:
                {transcript[:12000]}
                """

                response = self.model.generate_content(prompt)
                summary = self._parse_summary_response(response.text)
                if summary['key_points'] or summary['action_items']:
                    summary['ai_generated'] = True
                    return summary

            except Exception as e:
                logger.warning("transcript_summary_failed", error=str(e))

        return self._fallback_summary(transcript)

    def _parse_summary_response(self, response_text):
        summary = {'key_points': [], 'action_items': [], 'decisions': []}
        prefixes = {
            'KEY POINTS:': 'key_points',
            'ACTION ITEMS:': 'action_items',
            'DECISIONS:': 'decisions',
        }

        for line in response_text.strip().split('\n'):
            line = line.strip()
            for prefix, key in prefixes.items():
                if line.upper().startswith(prefix):
                    content = line.split(':', 1)[1]
                    summary[key] = [item.strip(' []-') for item in content.split('|') if item.strip(' []-')]

        return summary

    def _fallback_summary(self, transcript):
        """Keyword-matched sentences when the model is unavailable"""
        sentences = [s.strip() for s in re.split(r'(?<=[.!?])\s+|\n+', transcript or '') if len(s.strip()) > 15]
        # Drop "Speaker:" headers left by the compiled transcript
        sentences = [re.sub(r'^[^:\n]{1,40}:\s*', '', s) for s in sentences]

        def matching(keywords, limit):
            found = []
            for sentence in sentences:
                lowered = sentence.lower()
                if any(keyword in lowered for keyword in keywords) and sentence not in found:
                    found.append(sentence)
                if len(found) >= limit:
                    break
            return found

        return {
            'key_points': matching(KEY_POINT_KEYWORDS, 5),
            'action_items': matching(ACTION_KEYWORDS, 5),
            'decisions': matching(DECISION_KEYWORDS, 3),
            'ai_generated': False,
        }
