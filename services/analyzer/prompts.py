"""
Prompt Builder

Prompt templates for the four analyzers and the suggestions request.
Only string composition happens here.
"""
import json
from typing import Any, Dict, List

SECURITY_CHECKLIST = [
    "SQL injection vulnerabilities",
    "Cross-site scripting (XSS) vulnerabilities",
    "Cross-site request forgery (CSRF) protection",
    "Input validation and sanitization",
    "Authentication and authorization flaws",
    "File upload security",
    "Information disclosure (error messages, debug output, secrets)",
    "Insecure cryptographic practices",
]

PERFORMANCE_CHECKLIST = [
    "Database query optimization (N+1 queries, missing indexes)",
    "Memory usage and leaks",
    "CPU intensive operations and nested loops",
    "I/O operations (file reads, network calls inside loops)",
    "Caching opportunities",
    "Service container and event listener overhead",
    "Array and collection handling",
    "String manipulation efficiency",
]

QUALITY_CHECKLIST = [
    "SOLID principles",
    "Cyclomatic complexity",
    "Code duplication",
    "Naming conventions",
    "Class and method size",
    "Design pattern usage",
    "Error handling",
    "Type declarations (strict types, return types)",
    "PSR coding standard compliance",
    "Framework best practices",
]

DOCUMENTATION_CHECKLIST = [
    "Missing PHPDoc blocks on classes, methods and properties",
    "Parameter and return type documentation",
    "@throws annotations",
    "Inline comment quality",
    "Public API documentation",
    "Usage examples",
    "Deprecation notices",
    "@author, @since and @version tags",
    "Interface documentation",
    "Explanation of complex logic",
]

# Output schema per analyzer (shown verbatim to the model)
OUTPUT_SCHEMAS: Dict[str, str] = {
    "security": """{
  "severity": "low|medium|high|critical",
  "security_score": 1-10,
  "issues": [
    {
      "line": 12,
      "type": "sql_injection",
      "severity": "low|medium|high|critical",
      "message": "Description of the vulnerability",
      "suggestion": "How to fix it"
    }
  ],
  "summary": "Overall security assessment"
}""",
    "performance": """{
  "performance_score": 1-10,
  "issues": [
    {
      "line": 12,
      "type": "n_plus_one",
      "impact": "low|medium|high",
      "message": "Description of the bottleneck",
      "suggestion": "How to optimize it"
    }
  ],
  "optimizations": ["General optimization opportunities"],
  "summary": "Overall performance assessment"
}""",
    "quality": """{
  "quality_score": 1-10,
  "issues": [
    {
      "line": 12,
      "type": "complexity",
      "severity": "info|warning|error",
      "message": "Description of the problem",
      "suggestion": "How to improve it"
    }
  ],
  "metrics": {
    "complexity": "low|medium|high",
    "maintainability": "low|medium|high",
    "readability": "low|medium|high"
  },
  "summary": "Overall quality assessment"
}""",
    "documentation": """{
  "documentation_score": 1-10,
  "issues": [
    {
      "line": 12,
      "type": "missing_phpdoc",
      "severity": "info|warning|error",
      "message": "What is missing",
      "suggestion": "What to add"
    }
  ],
  "coverage": {
    "classes": "percentage",
    "methods": "percentage",
    "properties": "percentage"
  },
  "suggestions": ["Documentation improvements"],
  "summary": "Overall documentation assessment"
}""",
}

CHECKLISTS: Dict[str, List[str]] = {
    "security": SECURITY_CHECKLIST,
    "performance": PERFORMANCE_CHECKLIST,
    "quality": QUALITY_CHECKLIST,
    "documentation": DOCUMENTATION_CHECKLIST,
}

ROLES: Dict[str, str] = {
    "security": "You are a senior application security auditor specialized in PHP.",
    "performance": "You are a PHP performance engineer.",
    "quality": "You are a senior PHP reviewer focused on maintainability.",
    "documentation": "You are a technical writer reviewing PHP documentation.",
}


class PromptBuilder:
    """
    Builds analyzer prompts

    Sections:
    - role
    - checklist of the analyzer
    - file name and fenced code
    - JSON output schema
    """

    def build_analysis_prompt(self, analyzer: str, code: str, filename: str = "") -> str:
        """
        Full prompt for one analyzer

        Args:
            analyzer: security | performance | quality | documentation
            code: Source code
            filename: Shown to the model for context

        Returns:
            str: Prompt text

        Raises:
            KeyError: Unknown analyzer
        """
        prompt = self._get_system_intro(analyzer)
        prompt += self._format_checklist(CHECKLISTS[analyzer])
        prompt += self._format_code(code, filename)
        prompt += self._get_output_schema(analyzer)
        return prompt

    def _get_system_intro(self, analyzer: str) -> str:
        return f"""{ROLES[analyzer]}
Analyze the following PHP code for {analyzer} issues.

"""

    def _format_checklist(self, checklist: List[str]) -> str:
        items = "\n".join(f"{i}. {item}" for i, item in enumerate(checklist, start=1))
        return f"""## FOCUS AREAS
{items}

"""

    def _format_code(self, code: str, filename: str) -> str:
        return f"""## FILE: {filename or "(inline code)"}
```php
{code}
```
"""

    def _get_output_schema(self, analyzer: str) -> str:
        return f"""
## OUTPUT
Respond with a single JSON object in exactly this format:
{OUTPUT_SCHEMAS[analyzer]}

Report only real problems. Use an empty "issues" list when there are none.
"""

    def build_suggestions_prompt(self, code: str, issues: List[Dict[str, Any]]) -> str:
        """Prompt for optional improvement suggestions"""
        return (
            "Analyze this code and provide improvement suggestions:\n\n"
            f"{code}\n\n"
            "Issues found:\n"
            f"{json.dumps(issues, indent=2, default=str)}\n\n"
            'Respond with a JSON object: {"suggestions": [{"title": "...", '
            '"description": "...", "priority": "low|medium|high"}]}'
        )
