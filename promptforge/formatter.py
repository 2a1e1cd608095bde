"""Render an AnalysisResult into reusable prompt text.

Every PromptStyle maps to one pure template function taking
``(analysis, code, task)``. Templates never mutate the analysis, omit their
task section when ``task`` is blank and return stripped text.
"""

from typing import Callable

from promptforge.schemas import AnalysisResult, GroundingLink, PromptStyle

Formatter = Callable[[AnalysisResult, str, str], str]

NONE_IDENTIFIED = "None identified"


def code_language(analysis: AnalysisResult) -> str:
    words = analysis.language_framework.split()
    return words[0].lower() if words else "text"


def _bullets(items: list[str], prefix: str = "- ", indent: str = "") -> str:
    if not items:
        return f"{indent}{prefix}{NONE_IDENTIFIED}"
    return "\n".join(f"{indent}{prefix}{item}" for item in items)


def _code_block(analysis: AnalysisResult, code: str) -> str:
    return f"```{code_language(analysis)}\n{code}\n```"


def _links(links: list[GroundingLink] | None) -> list[GroundingLink]:
    return list(links or [])


def format_technical(analysis: AnalysisResult, code: str, task: str) -> str:
    a = analysis
    prompt = f"""Hello! Please act as an expert senior software engineer, taking the role of {a.role}.

Analyse the following code project. Its complete source is included at the end.

**Analysis Summary:**

- **Main Language/Framework:** {a.language_framework}
- **Main Objective:** {a.main_objective}
- **Technical Purpose:** {a.technical_purpose}

**Key Features:**
{_bullets(a.key_features)}

**Code Structure:**
- **Main Classes/Components:**
{_bullets(a.structure_classes, indent='  ')}
- **Main Functions/Methods:**
{_bullets(a.structure_functions, indent='  ')}
- **Critical Dependencies:**
{_bullets(a.dependencies, indent='  ')}
"""

    links = _links(a.grounding_links)
    if links:
        prompt += "\n**Documentation References:**\n"
        prompt += "\n".join(f"- [{link.title}]({link.url})" for link in links) + "\n"

    prompt += f"\n**Reference Source Code:**\n{_code_block(a, code)}\n"

    if task.strip():
        prompt += (
            "\n**Requested Task:**\n"
            f"Based on the analysis and the code provided, carry out the following task: **{task.strip()}**"
        )

    return prompt.strip()


def format_compact(analysis: AnalysisResult, code: str, task: str) -> str:
    a = analysis

    def joined(items: list[str]) -> str:
        return "; ".join(items) if items else NONE_IDENTIFIED.lower()

    lines = [
        f"ROLE: {a.role}",
        f"STACK: {a.language_framework}",
        f"GOAL: {a.main_objective}",
        f"FOCUS: {a.technical_purpose}",
        f"FEATURES: {joined(a.key_features)}",
        f"CLASSES: {joined(a.structure_classes)}",
        f"FUNCTIONS: {joined(a.structure_functions)}",
        f"DEPS: {joined(a.dependencies)}",
    ]
    links = _links(a.grounding_links)
    if links:
        lines.append("REFS: " + " | ".join(link.url for link in links))
    lines.append(f"CODE:\n{_code_block(a, code)}")
    if task.strip():
        lines.append(f"TASK: {task.strip()}")
    return "\n".join(lines).strip()


def format_concise(analysis: AnalysisResult, code: str, task: str) -> str:
    a = analysis
    prompt = f"""Language/Framework: {a.language_framework}
Objective: {a.main_objective}

Features:
{_bullets(a.key_features)}

{_code_block(a, code)}
"""
    if task.strip():
        prompt += f"\nTask: {task.strip()}"
    return prompt.strip()


def format_popular(analysis: AnalysisResult, code: str, task: str) -> str:
    a = analysis
    prompt = f"""Explain to me, in simple terms, what this **{a.language_framework}** code does.

**What it does, in a few words:**
{a.main_objective}

**Main features (what it can do):**
{_bullets(a.key_features)}

For reference, here is the complete code:
{_code_block(a, code)}
"""
    if task.strip():
        prompt += f"\nNow, based on what you understood, help me with this:\n**{task.strip()}**"
    return prompt.strip()


def format_friendly(analysis: AnalysisResult, code: str, task: str) -> str:
    a = analysis
    prompt = f"""Hi there! I'm working on a project and would really appreciate a hand.

It's built with {a.language_framework}, and in short it's {a.main_objective}. Under the hood, the main focus is {a.technical_purpose}.

A few things it already does:
{_bullets(a.key_features, prefix='* ')}

The main pieces you'll run into are:
{_bullets(a.structure_classes + a.structure_functions, prefix='* ')}

Here's the code so you can take a look:
{_code_block(a, code)}
"""
    if task.strip():
        prompt += f"\nHere's what I'd love your help with: {task.strip()}\n\nThanks a lot!"
    return prompt.strip()


def format_descriptive(analysis: AnalysisResult, code: str, task: str) -> str:
    a = analysis
    classes = ", ".join(a.structure_classes) or NONE_IDENTIFIED.lower()
    functions = ", ".join(a.structure_functions) or NONE_IDENTIFIED.lower()
    dependencies = ", ".join(a.dependencies) or NONE_IDENTIFIED.lower()

    prompt = f"""## Context

You are {a.role}. The project described below is written in {a.language_framework}. Its main objective is {a.main_objective}, and from a technical standpoint it focuses on {a.technical_purpose}.

## Capabilities

The project offers the following key features:
{_bullets(a.key_features)}

## Architecture

The main classes or components are: {classes}. The key functions or methods are: {functions}. It relies on the following critical dependencies: {dependencies}.
"""

    links = _links(a.grounding_links)
    if links:
        prompt += "\n## Further Reading\n\n"
        prompt += "\n".join(f"- {link.title}: {link.url}" for link in links) + "\n"

    prompt += f"\n## Source Code\n\n{_code_block(a, code)}\n"

    if task.strip():
        prompt += f"\n## Your Assignment\n\nUsing the context and code above, {task.strip()}"

    return prompt.strip()


def format_lovable(analysis: AnalysisResult, code: str, task: str) -> str:
    a = analysis
    prompt = f"""@@BEGIN_PROMPT_TRANSMISSION
@@FORMAT: Lovable
@@RECIPIENT: CreativeAI_Companion

@@CONTEXT_HEADER: Hello! Here is a summary of a really cool piece of code!

@@OBJECTIVE: {a.main_objective}

@@DEEP_DIVE_PURPOSE: Technically speaking, the focus is {a.technical_purpose}.

@@CORE_TECH: This little wonder was built with {a.language_framework}.

@@SUPERPOWERS:
{_bullets(a.key_features, prefix='# ')}

@@BLUEPRINT:
## Main Components (the big building blocks):
{_bullets(a.structure_classes)}

## Main Functions (the magic spells):
{_bullets(a.structure_functions)}

## Secret Ingredients (dependencies):
{_bullets(a.dependencies)}

@@SOURCE_CODE_REFERENCE: The full recipe is right here!
{_code_block(a, code)}
"""
    if task.strip():
        prompt += f"\n@@YOUR_MISSION:\nBased on what you understood, carry out this mission: **{task.strip()}**\n"

    prompt += "\n@@END_PROMPT_TRANSMISSION"
    return prompt.strip()


def format_base44(analysis: AnalysisResult, code: str, task: str) -> str:
    a = analysis
    prompt = f"""# App Brief for Base44

## Overview
{a.main_objective}

## Tech Stack
{a.language_framework}

## Core Purpose
{a.technical_purpose}

## Features to Preserve
{_bullets(a.key_features)}

## Entities & Components
{_bullets(a.structure_classes)}

## Logic & Actions
{_bullets(a.structure_functions)}

## Integrations
{_bullets(a.dependencies)}
"""

    links = _links(a.grounding_links)
    if links:
        prompt += "\n## References\n"
        prompt += "\n".join(f"- [{link.title}]({link.url})" for link in links) + "\n"

    prompt += f"\n## Existing Code\n{_code_block(a, code)}\n"

    if task.strip():
        prompt += f"\n## Build Request\n{task.strip()}"

    return prompt.strip()


FORMATTERS: dict[PromptStyle, Formatter] = {
    PromptStyle.TECHNICAL: format_technical,
    PromptStyle.COMPACT: format_compact,
    PromptStyle.CONCISE: format_concise,
    PromptStyle.POPULAR: format_popular,
    PromptStyle.FRIENDLY: format_friendly,
    PromptStyle.DESCRIPTIVE: format_descriptive,
    PromptStyle.LOVABLE: format_lovable,
    PromptStyle.BASE44: format_base44,
}

_missing = set(PromptStyle) - set(FORMATTERS)
if _missing:
    raise RuntimeError(f"No formatter registered for styles: {sorted(s.value for s in _missing)}")


def format_prompt(style: PromptStyle, analysis: AnalysisResult, code: str, task: str = "") -> str:
    return FORMATTERS[PromptStyle(style)](analysis, code, task or "")
