# src/llm/prompts.py — v1
"""Prompt templates sent to the inference oracle.

Templates use str.format placeholders; payloads are pre-serialized JSON.
Literal braces in the response examples are doubled.
"""

from __future__ import annotations

import json
from typing import Any


def to_json(value: Any) -> str:
    """Pretty JSON for prompt payloads (non-JSON values fall back to str)."""
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def context_block(context: Any) -> str:
    """Optional context section appended to several prompts."""
    if not context:
        return ""
    return f"\nContext:\n{to_json(context)}\n"


GENERATE_PATH_PROMPT = """Design a transformation path that converts data from the source structure into the target structure.

Source structure:
{source}

Target structure:
{target}
{context}
Describe:
1. attribute mappings from source paths to target paths (dot-separated, numeric segments index arrays)
2. the data transformations required
3. any intermediate steps
4. the recommended execution strategy ("default", "direct_mapping" or "llm")

Mapping transforms and transformations are objects {{"type": ..., "params": {{...}}}} where type is one of:
- format: params {{"format": "uppercase" | "lowercase" | "capitalize" | "trim"}}
- convert: params {{"targetType": "string" | "number" | "boolean" | "date" | "array"}}
- llm: params {{"instruction": "..."}}
- merge: params {{"sources": [{{"path": "...", "target": "..."}}]}}
- filter: params {{"paths": ["..."]}}
- compute: params {{"target": "...", "expression": "...", "inputs": {{"name": "source.path"}}}}

Return ONLY a JSON object with the fields:
- mappings: array of {{"source": "...", "target": "...", "transform": optional operation}}
- transformations: array of operations
- intermediateSteps: array (may be empty)
- recommendedStrategy: strategy name
- complexity: number between 0 and 1 (optional)"""


VALIDATE_PROMPT = """Check whether the transformation result conforms to the target structure description.

Result:
{result}

Target structure:
{target}
{context}
Verify that the result satisfies the target structure and list every problem.

Return ONLY a JSON object with the fields:
- valid: boolean
- issues: array of {{"field": "...", "description": "...", "severity": "error" | "warning"}}
- confidence: number between 0 and 1"""


OPTIMIZE_PROMPT = """Optimize the following transformation path.

Transformation path:
{path}
{metrics}
Simplify or merge steps, make it cheaper to execute and pick the most suitable strategy.
Every target field written by the original mappings must still be written.

Return ONLY the optimized transformation path as JSON with the same structure as the original."""


EVALUATE_PROMPT = """Evaluate the quality of the following data transformation.

Source data:
{source}

Transformed data:
{target}

Expected outcome:
{expected_outcome}

Evaluation strategy: {strategy}

Score the transformation from 0 to 100 on:
1. semanticPreservation: how well the meaning is preserved
2. structuralAdaptability: how well the structure matches the target
3. informationCompleteness: how completely the information is transferred
4. overallQuality: overall transformation quality

Return ONLY a JSON object:
{{"semanticPreservation": number, "structuralAdaptability": number, "informationCompleteness": number, "overallQuality": number, "strengths": [string], "weaknesses": [string], "recommendations": [string]}}"""


LLM_STRATEGY_PROMPT = """Convert the source data into the target format following the transformation path.

Source data:
{data}

Transformation path:
{path}
{context}
Return ONLY the converted JSON data, with no other text."""


LLM_VALUE_PROMPT = """Transform the value according to the instruction.

Value:
{value}

Instruction:
{instruction}
{context}
Return ONLY the transformed value, with no other text."""


COMPUTE_PROMPT = """Compute the result of the expression for the given inputs.

Expression:
{expression}

Inputs:
{inputs}
{context}
Return ONLY the computed result, with no other text."""


SIMILARITY_PROMPT = """Rate the semantic similarity of the two data structure descriptions.

Description A:
{first}

Description B:
{second}

Answer with a single number between 0 and 1 (1 = identical meaning), with no other text."""


USAGE_INSIGHTS_PROMPT = """Analyze the usage patterns of cached data transformations between modules.

Patterns:
{patterns}

Identify the most important relationships between modules, frequent conversions and opportunities to optimize.
Answer in a short paragraph."""


CACHE_OPTIMIZATION_PROMPT = """Suggest improvements to the transformation cache policy.

Usage statistics:
{stats}

Current recommendation:
{recommendation}

Return ONLY a JSON array of short suggestion strings."""


FEEDBACK_ANALYSIS_PROMPT = """Analyze the feedback given by human reviewers on data transformations.

Completed reviews:
{history}

Identify recurring problems and what the automated transformations get wrong.

Return ONLY a JSON object:
{{"patterns": [{{"pattern": "...", "frequency": number, "examples": [string]}}], "insights": "..."}}"""
