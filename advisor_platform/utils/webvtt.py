import re

import structlog

logger = structlog.get_logger(__name__)

SPEAKER_PATTERN = re.compile(r'^([^:]+):\s*(.+)$')
VOICE_TAG_PATTERN = re.compile(r'^<v\s+([^>]+)>(.*?)(?:</v>)?$')


def parse_timestamp(timestamp):
    """Convert 'HH:MM:SS.mmm' or 'MM:SS.mmm' to seconds"""
    try:
        parts = timestamp.strip().split()[0].split(':')
        if len(parts) == 3:
            hours, minutes, seconds = parts
            return int(hours) * 3600 + int(minutes) * 60 + float(seconds)
        if len(parts) == 2:
            minutes, seconds = parts
            return int(minutes) * 60 + float(seconds)
        return 0.0
    except (ValueError, IndexError):
        return 0.0


def _split_speaker(text_line):
    voice = VOICE_TAG_PATTERN.match(text_line)
    if voice:
        return voice.group(1).strip(), voice.group(2).strip()

    speaker_match = SPEAKER_PATTERN.match(text_line)
    if speaker_match:
        return speaker_match.group(1).strip(), speaker_match.group(2).strip()

    return 'Unknown', text_line


def parse_webvtt(content):
    """
    Parse a Daily.co WebVTT transcript.

    Returns a dict with per-speaker segments, the flattened
    ``Speaker: text`` transcript and a summary block, or None when the
    content is not WebVTT.
    """
    if not content or not content.lstrip().startswith('WEBVTT'):
        return None

    lines = content.splitlines()
    speakers = []
    by_name = {}
    full_text = []

    i = 0
    while i < len(lines):
        line = lines[i].strip()
        i += 1

        if '-->' not in line:
            continue

        start_raw, end_raw = [part.strip() for part in line.split('-->', 1)]
        cue_lines = []
        while i < len(lines) and lines[i].strip():
            cue_lines.append(lines[i].strip())
            i += 1

        if not cue_lines:
            continue

        speaker_name, text = _split_speaker(' '.join(cue_lines))
        speaker = by_name.get(speaker_name)
        if speaker is None:
            speaker = {
                'speaker_id': f'speaker_{len(speakers) + 1}',
                'speaker_name': speaker_name,
                'total_duration': 0.0,
                'segments': [],
            }
            by_name[speaker_name] = speaker
            speakers.append(speaker)

        start_seconds = parse_timestamp(start_raw)
        end_seconds = parse_timestamp(end_raw)
        speaker['segments'].append({
            'start_time': start_seconds,
            'end_time': end_seconds,
            'text': text,
            'confidence': 1.0,
        })
        speaker['total_duration'] += max(0.0, end_seconds - start_seconds)
        full_text.append(f'{speaker_name}: {text}')

    logger.debug("webvtt_parsed", speakers=len(speakers), cues=len(full_text))

    return {
        'speakers': speakers,
        'full_text': '\n'.join(full_text),
        'summary': {
            'key_points': [],
            'action_items': [],
            'duration': sum(s['total_duration'] for s in speakers),
            'participant_count': len(speakers),
        },
    }
