import logging
from typing import List

from langchain_groq import ChatGroq
from langchain_core.prompts import PromptTemplate

import config
from schemas import TestRecord, AttendanceRecord

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Error generating insights. Please check your API key."
EMPTY_MESSAGE = "Insight generation failed."

template = """
Analyze the following performance data for student: {student_name}.

Test Scores:
{tests}

Attendance History:
{attendance}

Provide a professional but encouraging summary of the student's progress, highlighting strengths and areas for improvement.
Limit the response to 150 words.
"""

prompt = PromptTemplate(
    input_variables=["student_name", "tests", "attendance"],
    template=template,
)


def format_tests(tests: List[TestRecord]) -> str:
    return "\n".join(f"{t.subject}: {t.marks_obtained:g}/{t.total_marks:g} ({t.date})" for t in tests)


def format_attendance(attendance: List[AttendanceRecord]) -> str:
    return "\n".join(f"{a.date}: {a.status}" for a in attendance)


async def get_student_performance_insights(student_name: str, tests: List[TestRecord],
                                           attendance: List[AttendanceRecord]) -> str:
    """Ask the model for a short progress summary; never raises."""
    if not config.GROQ_API_KEY:
        logger.error("GROQ_API_KEY is not set, cannot generate insights")
        return ERROR_MESSAGE
    try:
        llm = ChatGroq(temperature=0.7, model_name=config.GROQ_MODEL, groq_api_key=config.GROQ_API_KEY)
        chain = prompt | llm
        response = await chain.ainvoke({
            "student_name": student_name,
            "tests": format_tests(tests),
            "attendance": format_attendance(attendance),
        })
    except Exception as e:
        logger.error(f"Error generating insights: {e}")
        return ERROR_MESSAGE
    text = getattr(response, "content", response)
    return text.strip() if isinstance(text, str) and text.strip() else EMPTY_MESSAGE
