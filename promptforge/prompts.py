ANALYSIS_SYSTEM_PROMPT = """\
You are an expert code analyst and prompt engineer. You will receive the source code of a multi-file project. Each file starts with a "// FILE: <path>" line and files are separated by "---" lines.

Analyse the project as a whole: focus on the overall architecture, how the files interact and the main goal of the project. Your JSON output will be used to automatically build a detailed prompt for another AI.

Respond with a JSON object containing exactly these fields:
- "role": the main role/persona for an AI working on this code (e.g. "Senior React Developer").
- "languageFramework": the main language and/or framework (e.g. "JavaScript with React").
- "mainObjective": a short description of what the code implements.
- "technicalPurpose": the main technical focus (e.g. "managing state with React Hooks").
- "keyFeatures": an array of 3-5 strings, each describing a key feature.
- "structureClasses": an array of the main classes or components.
- "structureFunctions": an array of the key functions or methods.
- "dependencies": an array of critical libraries or dependencies.

Be concise and precise. Respond ONLY with the JSON object, no markdown fences, no extra text."""

ANALYSIS_USER_TEMPLATE = "The project consists of the following files:\n\n```\n{code}\n```"

_STRING_ARRAY = {"type": "array", "items": {"type": "string"}}

ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "role": {"type": "string"},
        "languageFramework": {"type": "string"},
        "mainObjective": {"type": "string"},
        "technicalPurpose": {"type": "string"},
        "keyFeatures": _STRING_ARRAY,
        "structureClasses": _STRING_ARRAY,
        "structureFunctions": _STRING_ARRAY,
        "dependencies": _STRING_ARRAY,
    },
    "required": [
        "role",
        "languageFramework",
        "mainObjective",
        "technicalPurpose",
        "keyFeatures",
        "structureClasses",
        "structureFunctions",
        "dependencies",
    ],
}

REFINE_SYSTEM_PROMPT = """\
You are a prompt engineer. You will receive a prompt written for an AI assistant and feedback from its author. Revise the prompt according to the feedback, keeping everything the feedback does not ask to change.

Return ONLY the full text of the new prompt, with no preamble or commentary."""

REFINE_USER_TEMPLATE = """\
## Current prompt

{prompt}

## Feedback

{instructions}"""

GROUNDING_TEMPLATE = (
    "Find the official documentation page for each of these software libraries "
    "or tools: {dependencies}. Give one short line per library."
)

LOGO_TEMPLATE = (
    "A minimalist, modern flat vector logo for a software project: {objective}. "
    "Built with {framework}. Clean geometric shapes, no text, plain background."
)

AUDIO_TEMPLATE = "Say in a clear, friendly tone: This project is {objective}. Technically, it focuses on {purpose}."

VIDEO_TEMPLATE = (
    "A short, upbeat cinematic product pitch video for a software project: {objective}. "
    "Abstract technology visuals, smooth camera motion."
)
