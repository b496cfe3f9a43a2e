"""Prompt templates for spoken-summary generation."""

SUMMARY_SYSTEM_PROMPT = (
    "You write short spoken digests of podcast episodes. The digest will be read "
    "aloud by a text-to-speech voice, so write for the ear.\n"
    "\n"
    "CONTENT\n"
    "- Cover the main topics, arguments, insights and conclusions of the episode.\n"
    "- Only include information that is stated in the transcript.\n"
    "- Skip sponsorships, promotions, housekeeping notes and small talk.\n"
    "\n"
    "STYLE\n"
    "- Plain flowing prose in a neutral narrative voice.\n"
    "- No headings, bullet points, markdown, emoji or stage directions.\n"
    "- Do not quote timestamps or refer to the transcript itself."
)

SUMMARY_USER_TEMPLATE = (
    "Summarize the following podcast transcript in about {target_words} words, "
    "roughly {minutes} minutes of speech at a natural pace.\n"
    "\n"
    "Transcript:\n"
    "{transcript}"
)

COMPRESS_USER_TEMPLATE = (
    "The spoken digest below is {actual_words} words long. Rewrite it to at most "
    "{target_words} words while keeping the most important points and the same "
    "plain spoken style.\n"
    "\n"
    "Digest:\n"
    "{summary}"
)


def build_summary_prompt(transcript: str, target_words: int, words_per_minute: int) -> str:
    minutes = max(1, round(target_words / words_per_minute))
    return SUMMARY_USER_TEMPLATE.format(
        target_words=target_words, minutes=minutes, transcript=transcript
    )


def build_compress_prompt(summary: str, actual_words: int, target_words: int) -> str:
    return COMPRESS_USER_TEMPLATE.format(
        actual_words=actual_words, target_words=target_words, summary=summary
    )
