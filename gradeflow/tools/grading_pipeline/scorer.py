"""Score extracted submission text against an answer key using pydantic-ai structured output."""

import logging
import math
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from gradeflow.libs.config_loader import ConfigType, get_config
from gradeflow.libs.extraction import html_to_text
from gradeflow.libs.llm import create_agent
from .models import (
    Rubric,
    ScoreResponse,
    ScoreResult,
    SectionScore,
    percentage_of,
)

LOG = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an experienced educator grading student worksheets. Your role is to:

1. Compare student answers against the answer key
2. Award partial credit where appropriate
3. Provide constructive, encouraging feedback
4. Identify learning patterns and make recommendations

GRADING PRINCIPLES:
- Be fair and consistent
- Give partial credit for partially correct answers
- Recognize different valid approaches to problems
- Focus feedback on learning, not just correctness
- Be encouraging while being honest about areas for improvement

SCORING GUIDELINES (per question):
- 100% of the points: answer is correct or shows correct understanding
- 75% of the points: minor errors but correct approach
- 50% of the points: some understanding shown but significant errors
- 25% of the points: minimal understanding or effort shown
- 0% of the points: no answer or completely incorrect

FEEDBACK STYLE:
- Keep section feedback to 1-2 sentences
- Be specific about what was done well and what needs improvement
- Use encouraging language
- Suggest specific strategies for improvement

LEARNING RECOMMENDATIONS:
- Identify patterns across sections
- Note if the student consistently struggles with certain concepts (needs scaffolding)
- Note if the student shows mastery and could handle more challenge (acceleration)
- Be specific about which areas need support or could be accelerated

If the submitted work says the document could not be read, award no credit,
say so plainly in the feedback and recommend that a teacher review the original document."""


class ScoringError(Exception):
    """The structured scoring call failed or returned an unusable result."""


def answer_key_text(content: str) -> str:
    """Answer key as plain text; HTML answer keys are converted to markdown."""
    if re.search(r'<[a-zA-Z][^>]*>', content):
        text = html_to_text(content)
        return re.sub(r'^#+\s*ANSWER KEY\s*$', '', text, flags=re.IGNORECASE | re.MULTILINE).strip()
    return content.strip()


def _finite(value: float) -> float:
    """NaN and infinities from the model count as zero."""
    return value if math.isfinite(value) else 0.0


def create_scoring_agent(configs: ConfigType,
                         model: Optional[str] = None,
                         settings_dict: Optional[Dict[str, Any]] = None) -> Any:
    """Create the pydantic-ai Agent used for scoring, producing ScoreResponse objects."""
    base_settings = get_config("grading.model_settings", configs, default={}) or {}
    return create_agent(
        configs=configs,
        model=model,
        settings_dict=base_settings | (settings_dict or {}),
        system_prompt=SYSTEM_PROMPT,
        output_type=ScoreResponse,
        retries=get_config("grading.output_retries", configs, default=1),
    )


def normalize_response(response: ScoreResponse, rubric: Rubric) -> ScoreResult:
    """
    Clamp a model response into a consistent ScoreResult.

    Section scores are clamped to their section maximum, the total to
    [0, rubric total], and the sections always sum to the total.
    """
    total = float(rubric.total_points)

    sections: List[SectionScore] = []
    for section in response.section_scores:
        possible = rubric.points_for(section.section_name)
        if possible is None:
            possible = max(_finite(section.points_possible), 0.0)
        earned = min(max(_finite(section.points_earned), 0.0), possible)
        if earned != section.points_earned:
            LOG.warning("Clamped section %r from %s to %s", section.section_name, section.points_earned, earned)
        sections.append(section.model_copy(update={'points_earned': earned, 'points_possible': possible}))

    raw_score = sum(s.points_earned for s in sections) if sections else _finite(response.overall_score)
    if sections and raw_score != response.overall_score:
        LOG.debug("Model total %s disagrees with section sum %s; using section sum",
                  response.overall_score, raw_score)
    score = min(max(raw_score, 0.0), total)
    if score != response.overall_score:
        LOG.warning("Clamped score from %s to %s (total possible %s)", response.overall_score, score, total)

    if not sections:
        sections.append(SectionScore(
            section_name="Overall",
            points_earned=score,
            points_possible=total,
            feedback=response.overall_feedback,
        ))

    excess = sum(s.points_earned for s in sections) - score
    for i in range(len(sections) - 1, -1, -1):
        if excess <= 0:
            break
        cut = min(excess, sections[i].points_earned)
        sections[i] = sections[i].model_copy(update={'points_earned': sections[i].points_earned - cut})
        excess -= cut

    return ScoreResult(
        score=score,
        total_possible=total,
        percentage=percentage_of(score, total),
        section_scores=sections,
        overall_feedback=response.overall_feedback,
        recommendations=response.learning_recommendations,
    )


class SubmissionScorer:
    """Score a submission's text against a rubric with a structured-output LLM call."""

    def __init__(self, configs: ConfigType,
                 model: Optional[str] = None,
                 settings: Optional[Dict[str, Any]] = None,
                 agent: Any = None):
        """
        Initialize the scorer.

        Args:
            configs: Configuration dictionary (required)
            model: Model to use (overrides config value)
            settings: Pydantic AI settings dict (overrides config values)
            agent: Pre-built agent (skips agent creation)
        """
        self.configs = configs
        self.agent = agent if agent is not None else create_scoring_agent(configs, model, settings)

    async def score(self, extracted_text: str, rubric: Rubric, student_name: str) -> ScoreResult:
        """
        Score one submission.

        Raises:
            ScoringError: If the model call fails or its output does not match the schema
        """
        prompt = self.build_prompt(extracted_text, rubric, student_name)
        try:
            result = await self.agent.run(prompt)
        except Exception as e:  # pylint: disable=broad-except
            LOG.error("Scoring call failed for %s: %s", student_name, e)
            raise ScoringError(str(e) or type(e).__name__) from e

        output = getattr(result, 'output', result)
        try:
            response = output if isinstance(output, ScoreResponse) else ScoreResponse.model_validate(output)
        except ValidationError as e:
            raise ScoringError(f"Invalid structured response: {e}") from e

        scored = normalize_response(response, rubric)
        LOG.debug("Scored %s: %s/%s", student_name, scored.score, scored.total_possible)
        return scored

    def build_prompt(self, extracted_text: str, rubric: Rubric, student_name: str) -> str:
        """Build the grading prompt with answer key, breakdown and student work."""
        if rubric.sections:
            breakdown = "\n".join(f"- {s.section_name}: {s.points_possible:g} points" for s in rubric.sections)
        else:
            breakdown = f"- Total: {rubric.total_points} points"

        return f"""Grade {student_name}'s worksheet submission.

ANSWER KEY:
{answer_key_text(rubric.answer_key_content)}

GRADING BREAKDOWN:
Total Points: {rubric.total_points}
{breakdown}

STUDENT'S SUBMITTED WORK (extracted text):
{extracted_text}

TASK:
1. Compare each answer in the student's work to the answer key
2. Award points per question using the partial credit bands (100/75/50/25/0 percent)
3. Report one section score per section of the grading breakdown, using the section names exactly
4. Make the section scores add up to the overall score, never exceeding {rubric.total_points}
5. Provide brief, constructive feedback for each section
6. Identify areas where the student needs additional support (scaffolding)
7. Identify areas where the student could handle more advanced material (acceleration)
8. Provide an overall recommendation for next steps"""
