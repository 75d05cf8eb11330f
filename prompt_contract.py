# prompt_contract.py

PROMPT = r"""
You are transcribing a handwritten care-visit note from an image into plain text.

Layout of the note:
- First line: client name, optionally followed by the visit date (e.g. "Susan Johnson 3/15/24").
- Following lines: numbered activities, one per line, in the form
  "1. <what was done> - <time spent>"

Rules:
- Keep the line order exactly as written.
- Keep the number prefix ("1. ", "2. ", ...) at the start of each activity line.
- Keep the time exactly as written (e.g. "75", "1.25", "45 min", "1.5 hrs"). Do NOT convert units.
- Use " - " between the activity text and the time.
- Dates stay in month/day/year form with slashes (e.g. "3/15/24").
- Do not invent content. If a line is unreadable, omit it.

Output ONLY the transcribed text, one note line per line.
No JSON, no markdown, no commentary.
""".strip()
