"""
Natural language to SQL translation for Query Assistant.

This module builds the generation prompt, calls the configured LLM provider
and cleans its answer. When the provider cannot produce SQL, a canned query
is chosen by keyword instead, and the result is marked as a fallback.
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import anthropic
import httpx
import yaml
from mistralai import Mistral
from openai import AsyncOpenAI

from query_assistant.config import Settings

logger = logging.getLogger(__name__)

RULES_PATH = Path(__file__).parent / "translation_rules.yaml"

CODE_FENCE_PATTERN = re.compile(r"```(?:sql)?\n?", re.IGNORECASE)


@dataclass(frozen=True)
class Translation:
    """Generated SQL plus where it came from."""
    sql: str
    is_fallback: bool = False
    provider: Optional[str] = None


def load_translation_rules(path: Path = RULES_PATH) -> Dict[str, Any]:
    """Load glossary, examples and fallback rules from YAML."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            rules = yaml.safe_load(f)
    except FileNotFoundError:
        raise ValueError(f"Configuration file not found: {path.name}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path.name}: {str(e)}")
    if not isinstance(rules, dict) or "fallback" not in rules:
        raise ValueError(f"Missing required key 'fallback' in {path.name}")
    return rules


def clean_sql_response(response_text: str) -> str:
    """Strip whitespace and markdown code fences from an LLM answer."""
    return CODE_FENCE_PATTERN.sub("", response_text.strip()).strip()


def glossary_to_string(glossary: Dict[str, Dict[str, str]]) -> str:
    lines = []
    for term, info in glossary.items():
        lines.append(f"- {term}: {info['meaning']}")
        if info.get("why_it_matters"):
            lines.append(f"  Why it matters: {info['why_it_matters']}")
    return "\n".join(lines)


def build_prompt(question: str, schema: str, rules: Dict[str, Any], table: str) -> str:
    """Build the single prompt sent to the completion service."""
    glossary_str = glossary_to_string(rules.get("glossary", {}))
    examples = "\n".join(
        f'- For "{ex["question"]}": {ex["sql"].format(table=table)}'
        for ex in rules.get("examples", [])
    )
    return f"""You are an expert at writing Microsoft SQL Server queries. Translate the natural language question below into a SQL query.
Return only the SQL query, nothing else.

Order data is stored in the {table} table.
Main columns:
{glossary_str}

Examples:
{examples}

Database schema:
{schema}

Natural language question:
{question}

Return only the SQL query, nothing else.
The query must not contain errors. Fix any syntax errors before returning it.
Unless DISTINCT or an aggregate is used, return at most 1000 rows.
"""


def _rule_matches(rule: Dict[str, Any], lowered: str) -> bool:
    # "terms" are stems matched anywhere (Turkish suffixes); "words" must stand alone
    if any(term.lower() in lowered for term in rule.get("terms", [])):
        return True
    return any(re.search(rf"\b{re.escape(word.lower())}\b", lowered) for word in rule.get("words", []))


class SQLTranslator:
    """Turns a question plus schema text into a SQL statement."""

    def __init__(self, settings: Settings, rules: Optional[Dict[str, Any]] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.rules = rules or load_translation_rules()
        self._transport = transport

    @property
    def provider(self) -> str:
        return self.settings.llm_provider.lower()

    def _model_for(self, provider: str) -> str:
        if self.settings.llm_model:
            return self.settings.llm_model
        return getattr(self.settings, f"{provider}_model")

    def _api_key_for(self, provider: str) -> str:
        api_key = getattr(self.settings, f"{provider}_api_key", "")
        if not api_key or not api_key.strip():
            raise ValueError(f"{provider.upper()}_API_KEY is not set")
        return api_key

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.llm_timeout_seconds, transport=self._transport)

    async def _gemini_generate(self, prompt: str) -> str:
        api_key = self._api_key_for("gemini")
        url = f"{self.settings.gemini_base_url}/models/{self._model_for('gemini')}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.settings.llm_temperature,
                "maxOutputTokens": self.settings.llm_max_output_tokens,
            },
        }
        headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
        async with self._http_client() as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            result = response.json()
        return result["candidates"][0]["content"]["parts"][0]["text"]

    async def _openai_compatible_generate(self, prompt: str, provider: str) -> str:
        client = AsyncOpenAI(
            api_key=self._api_key_for(provider),
            base_url=self.settings.deepseek_base_url if provider == "deepseek" else None,
            http_client=self._http_client(),
        )
        response = await client.chat.completions.create(
            model=self._model_for(provider),
            messages=[{"role": "user", "content": prompt}],
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_output_tokens,
        )
        return response.choices[0].message.content

    async def _anthropic_generate(self, prompt: str) -> str:
        client = anthropic.AsyncAnthropic(
            api_key=self._api_key_for("anthropic"),
            timeout=self.settings.llm_timeout_seconds,
        )
        response = await client.messages.create(
            model=self._model_for("anthropic"),
            max_tokens=self.settings.llm_max_output_tokens,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.settings.llm_temperature,
        )
        return response.content[0].text

    async def _mistral_generate(self, prompt: str) -> str:
        client = Mistral(
            api_key=self._api_key_for("mistral"),
            timeout_ms=int(self.settings.llm_timeout_seconds * 1000),
        )
        response = await client.chat.complete_async(
            model=self._model_for("mistral"),
            messages=[{"role": "user", "content": prompt}],
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_output_tokens,
        )
        return response.choices[0].message.content

    async def generate(self, prompt: str) -> str:
        """Send the prompt to the configured provider and return its raw text."""
        provider = self.provider
        if provider == "gemini":
            return await self._gemini_generate(prompt)
        elif provider in ("openai", "deepseek"):
            return await self._openai_compatible_generate(prompt, provider)
        elif provider == "anthropic":
            return await self._anthropic_generate(prompt)
        elif provider == "mistral":
            return await self._mistral_generate(prompt)
        else:
            raise ValueError(f"Unknown provider: {provider}")

    def fallback_sql(self, question: str) -> str:
        """Pick a canned query by keyword. Recency rules are checked first."""
        fallback = self.rules["fallback"]
        table = self.settings.qualified_table
        lowered = question.lower()
        for rule in fallback.get("rules", []):
            if _rule_matches(rule, lowered):
                logger.info("Fallback rule '%s' matched", rule["name"])
                return rule["sql"].format(table=table)
        return fallback["default_sql"].format(table=table)

    async def translate(self, question: str, schema: str) -> Translation:
        """
        Convert a natural language question into SQL.

        Args:
            question: The user's question, passed to the model verbatim
            schema: Schema description from the introspector

        Returns:
            Translation; is_fallback is True when a canned query was used
        """
        prompt = build_prompt(question, schema, self.rules, self.settings.qualified_table)
        try:
            raw = await self.generate(prompt)
            if not isinstance(raw, str):
                raise ValueError(f"{self.provider} returned no text")
            sql = clean_sql_response(raw)
            if not sql:
                raise ValueError(f"{self.provider} returned empty SQL text")
        except Exception as e:
            logger.warning("SQL generation with %s failed, using fallback query: %s: %s",
                           self.provider, type(e).__name__, e)
            return Translation(sql=self.fallback_sql(question), is_fallback=True)

        logger.info("SQL generated by %s: %s", self.provider, sql)
        return Translation(sql=sql, provider=self.provider)
