"""Prompt builders for structured prompt generation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .generator import GenerationConfig

BASE_INSTRUCTIONS = (
    "You are an expert prompt engineer with deep knowledge of AI systems and prompt optimization. "
    "Your task is to generate a professional, effective prompt based on the user's requirements.\n\n"
    "IMPORTANT: You must respond with a valid JSON object that matches the specified structure type. "
    "Do not include any text before or after the JSON."
)

STRUCTURE_SCHEMAS = {
    "standard": """Generate a "standard" prompt structure with segments. Return JSON with this exact format:
{
  "structure_type": "standard",
  "segments": [
    {
      "type": "system|user|assistant|context|instruction",
      "content": "segment content here"
    }
  ]
}""",
    "structured": """Generate a "structured" prompt with titled sections. Return JSON with this exact format:
{
  "structure_type": "structured",
  "sections": [
    {
      "title": "section title",
      "description": "optional description",
      "content": "section content here"
    }
  ]
}""",
    "modulized": """Generate a "modulized" prompt with reusable modules. Return JSON with this exact format:
{
  "structure_type": "modulized",
  "modules": [
    {
      "title": "module title",
      "description": "module description",
      "content": "module content here",
      "wrapper_id": "optional wrapper type"
    }
  ]
}""",
    "advanced": """Generate an "advanced" prompt with blocks containing modules. Return JSON with this exact format:
{
  "structure_type": "advanced",
  "blocks": [
    {
      "title": "block title",
      "description": "block description",
      "modules": [
        {
          "title": "module title",
          "content": "module content here"
        }
      ]
    }
  ]
}""",
}

COMPLEXITY_GUIDELINES = {
    "simple": "Keep the prompt straightforward and easy to understand. Use 1-3 components with clear, concise content.",
    "medium": "Create a moderately detailed prompt with 3-5 components. Include examples and specific instructions.",
    "complex": (
        "Build a comprehensive, sophisticated prompt with 5+ components. "
        "Include detailed instructions, examples, constraints, and edge cases."
    ),
}

CATEGORY_CONTEXT = {
    "ai": "Focus on AI assistant interactions, conversation flow, and response quality.",
    "web": "Emphasize web development tasks, code generation, and technical documentation.",
    "data": "Concentrate on data analysis, processing, and interpretation tasks.",
    "creative": "Focus on creative writing, content generation, and artistic expression.",
    "business": "Emphasize business processes, decision-making, and professional communication.",
    "research": "Focus on research methodology, analysis, and academic writing.",
}

TYPE_INSTRUCTIONS = {
    "assistant": "Create a conversational assistant prompt that guides helpful responses.",
    "analyzer": "Build an analytical prompt that breaks down and examines information.",
    "generator": "Design a creative generation prompt that produces original content.",
    "optimizer": "Create an optimization prompt that improves and refines input.",
    "tool": "Build a functional tool prompt that performs specific tasks.",
    "agent": "Design an autonomous agent prompt that can take actions and make decisions.",
}


def build_system_prompt(config: "GenerationConfig") -> str:
    additional = f"ADDITIONAL CONTEXT:\n{config.file_context}" if config.file_context else ""
    category_line = CATEGORY_CONTEXT.get(config.category, "General purpose prompt design.")
    type_line = TYPE_INSTRUCTIONS.get(config.type, "General purpose functionality.")
    return (
        f"{BASE_INSTRUCTIONS}\n\n"
        f"STRUCTURE REQUIREMENTS:\n{STRUCTURE_SCHEMAS[config.structure_type]}\n\n"
        f"COMPLEXITY LEVEL: {config.complexity}\n{COMPLEXITY_GUIDELINES[config.complexity]}\n\n"
        f"CATEGORY CONTEXT: {config.category}\n{category_line}\n\n"
        f"TYPE FOCUS: {config.type}\n{type_line}\n\n"
        f"LANGUAGE: {config.language}\nGenerate all content in {config.language}.\n\n"
        f"USER REQUIREMENTS:\n\"{config.user_input}\"\n\n"
        f"{additional}\n\n"
        "Generate a professional, effective prompt that follows the exact JSON structure specified above. "
        "Ensure the content is relevant, well-organized, and optimized for the intended use case."
    )


def build_user_prompt(config: "GenerationConfig") -> str:
    return (
        f"Please generate a {config.complexity} {config.structure_type} prompt for {config.category} "
        f"use cases with the following requirements:\n\n"
        f"{config.user_input}\n\n"
        f"The prompt should be optimized for {config.type} functionality and written in {config.language}."
    )
