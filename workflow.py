"""
Diagnosis workflow - stage policy for the troubleshooting conversation.

Three stages, always moving forward:
1. initial    - gather basic context about the robot and the fault
2. diagnostic - narrow down the root cause
3. solution   - deliver a structured fix

The policy is a pure function of (current stage, history length). It does
no I/O and keeps no state between calls.
"""

from typing import List, NamedTuple, Sequence, Any

from models import Stage, Turn

# Stored turns (two per completed exchange) needed before advancing.
DIAGNOSTIC_THRESHOLD = 2
SOLUTION_THRESHOLD = 4

# Phrases that suggest the user already has a fix in mind. Logged as a hint
# only; the transition depends on history length alone.
SOLUTION_KEYWORDS = [
    "root cause", "likely cause", "problem is", "issue is",
    "reduce", "increase", "replace", "upgrade", "try this",
    "adjust", "calibrate", "check the", "verify the",
]

SOLUTION_SECTIONS = ["Root Cause", "Solution Steps", "Prevention", "Parts/Tools"]

STAGE_PROMPTS = {
    Stage.INITIAL: """You are a robotics troubleshooting expert. A user is describing a robot problem.

Ask only the most essential questions you need to understand the situation. Start with basic context:
- What type of robot is it and what problem are they experiencing?

If the user already provided details, acknowledge them and ask follow-up questions as needed. Do not ask questions they have already answered.

Be conversational, friendly, and concise.""",

    Stage.DIAGNOSTIC: """You are a robotics troubleshooting expert analyzing a specific robot problem.

Based on what the user has told you:
- If you strongly suspect a specific cause, ask at most 1-2 targeted questions to confirm it
- If you are already confident, state the likely cause directly instead of asking
- If the issue is still unclear, ask the single most relevant diagnostic question

Consider:
- Mechanical issues (misalignment, wear, binding)
- Electrical issues (power, servo failures, wiring)
- Control issues (PID tuning, sensor calibration)
- Software issues (bugs, incorrect parameters)

Be efficient. Do not repeat questions the user has already answered and do not ask unnecessary questions if you can already identify the problem.""",

    Stage.SOLUTION: """You are a robotics troubleshooting expert. You have gathered sufficient information.

Do not ask any further questions. Provide a clear, structured diagnosis using exactly these four sections, in this order, with a BLANK LINE between each section:

**Root Cause**: What is causing the problem

**Solution Steps**:
1. First action

2. Second action

3. Third action

**Prevention**: How to avoid this in future

**Parts/Tools**: List any components or tools needed

IMPORTANT: Put a blank line between each numbered Solution step for readability. Be practical, actionable, and specific.""",
}


class StageDecision(NamedTuple):
    """Result of one policy decision."""
    system_prompt: str
    next_stage: Stage


def get_system_prompt(stage: Any) -> str:
    """Return the instruction block for a stage; unknown stages get the initial prompt."""
    return STAGE_PROMPTS[Stage.coerce(stage)]


def has_solution_hint(user_message: str) -> bool:
    """True if the message mentions one of SOLUTION_KEYWORDS."""
    lower = (user_message or "").lower()
    return any(keyword in lower for keyword in SOLUTION_KEYWORDS)


def determine_next_stage(current_stage: Any, user_message: str, history: Sequence[Turn]) -> Stage:
    """
    Decide the stage that follows this turn.

    Args:
        current_stage: Stage stored for the session (unknown values mean initial)
        user_message: Latest user text, not consulted by the transition rule
        history: Stored turns before this turn's pair is appended

    Returns:
        Next stage; solution is absorbing
    """
    stage = Stage.coerce(current_stage)
    count = len(history)

    if stage is Stage.INITIAL:
        if count >= DIAGNOSTIC_THRESHOLD:
            return Stage.DIAGNOSTIC
        return Stage.INITIAL

    if stage is Stage.DIAGNOSTIC:
        if count >= SOLUTION_THRESHOLD:
            return Stage.SOLUTION
        return Stage.DIAGNOSTIC

    return Stage.SOLUTION


def decide(current_stage: Any, user_message: str, history: List[Turn]) -> StageDecision:
    """Select the system prompt for the current stage and the next stage."""
    return StageDecision(
        system_prompt=get_system_prompt(current_stage),
        next_stage=determine_next_stage(current_stage, user_message, history),
    )
