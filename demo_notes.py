"""
Sample notes for the "Try a Demo" menu and as OCR fallback text.
Shape matches what prompt_contract.PROMPT asks the model to return.
"""

DEMO_NOTES = [
    {
        "name": "Susan J. - Insurance & Visit",
        "text": (
            "Susan Johnson 3/15/24\n"
            "1. Phone call insurance company about coverage denial - 75\n"
            "2. Visit client at assisted living facility - 1.25\n"
            "3. Meeting with care team about medication changes - 45\n"
            "4. Follow up call to family about updates - 25\n"
            "5. Documentation and care plan updates - 30"
        ),
    },
    {
        "name": "Robert C. - Hospital Discharge",
        "text": (
            "Robert Chen 3/18/24\n"
            "1. Hospital visit - reviewed discharge planning - 90\n"
            "2. Coordination call with social worker - 30\n"
            "3. Insurance authorization request - 45\n"
            "4. Family meeting via phone - 60\n"
            "5. Care transition documentation - 20"
        ),
    },
    {
        "name": "Maria R. - Home Assessment",
        "text": (
            "Maria Rodriguez 3/20/24\n"
            "1. Home visit - assessment and support - 2.0\n"
            "2. Call to primary care physician office - 15\n"
            "3. Prescription assistance coordination - 45\n"
            "4. Follow up with pharmacy about delivery - 20\n"
            "5. Weekly summary report preparation - 35"
        ),
    },
]


def demo_text(name: str) -> str:
    for demo in DEMO_NOTES:
        if demo["name"] == name:
            return demo["text"]
    raise KeyError(name)
