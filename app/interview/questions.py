from core.config import (
    DEFAULT_PRACTICE_QUESTION_COUNT,
    DEFAULT_SCHEDULED_QUESTION_COUNT,
    QUESTION_TIME_LIMIT_SEC,
)
from app.interview.models import ExperienceLevel, JobRole

GENERIC_QUESTION = "Tell me about yourself and your background."
UNCONFIGURED_QUESTION = "No role/level selected. Tell me about yourself."


# ---------- STATIC FALLBACK QUESTIONS ----------

FALLBACK_QUESTIONS: dict[JobRole, dict[ExperienceLevel, list[str]]] = {
    JobRole.WEB_DEVELOPER: {
        ExperienceLevel.FRESHER: [
            "Tell me about yourself and your interest in web development.",
            "What HTML and CSS concepts are you familiar with?",
            "Have you worked with JavaScript before? What basic concepts do you understand?",
            "Describe a simple web project you've worked on.",
        ],
        ExperienceLevel.JUNIOR: [
            "Tell me about your experience with responsive design.",
            "How do you approach debugging in JavaScript?",
            "Explain the difference between let, const, and var in JavaScript.",
            "What frontend frameworks or libraries have you worked with?",
        ],
        ExperienceLevel.MID_LEVEL: [
            "Explain the concept of closures in JavaScript.",
            "How do you handle state management in a React application?",
            "Describe your experience with RESTful APIs.",
            "How do you optimize website performance?",
        ],
        ExperienceLevel.SENIOR: [
            "Describe a complex architecture you've designed for a web application.",
            "How do you approach testing in a large-scale web application?",
            "Explain your experience with microservices in web development.",
            "How do you mentor junior developers in your team?",
        ],
    },
    JobRole.APP_DEVELOPER: {
        ExperienceLevel.FRESHER: [
            "Why are you interested in mobile app development?",
            "What programming languages have you learned?",
            "Describe a simple app idea you would like to build.",
            "What do you know about the app development lifecycle?",
        ],
        ExperienceLevel.JUNIOR: [
            "Tell me about an app you've worked on.",
            "How familiar are you with native vs cross-platform development?",
            "Describe your experience with state management in mobile apps.",
            "How do you handle user input validation?",
        ],
        ExperienceLevel.MID_LEVEL: [
            "Explain your approach to app architecture.",
            "How do you handle offline capabilities in mobile apps?",
            "Describe your experience with consuming APIs in mobile applications.",
            "How do you approach testing for mobile applications?",
        ],
        ExperienceLevel.SENIOR: [
            "Describe a complex mobile architecture you've designed.",
            "How do you approach performance optimization in mobile apps?",
            "Explain your experience with CI/CD for mobile applications.",
            "How do you manage dependencies in large-scale mobile applications?",
        ],
    },
    JobRole.ML_AI: {
        ExperienceLevel.FRESHER: [
            "Why are you interested in AI and machine learning?",
            "What ML/AI concepts have you studied?",
            "Have you completed any ML projects or courses?",
            "What programming languages do you know for data analysis?",
        ],
        ExperienceLevel.JUNIOR: [
            "Explain the difference between supervised and unsupervised learning.",
            "Describe a simple ML project you've worked on.",
            "How familiar are you with Python libraries for ML?",
            "What do you know about data preprocessing?",
        ],
        ExperienceLevel.MID_LEVEL: [
            "Explain how you would approach a classification problem.",
            "Describe your experience with neural networks.",
            "How do you evaluate ML model performance?",
            "What experience do you have with NLP or computer vision?",
        ],
        ExperienceLevel.SENIOR: [
            "Describe a complex ML system you've designed and deployed.",
            "How do you approach ML model optimization and maintenance?",
            "Explain your experience with distributed computing for ML.",
            "How do you stay current with the rapidly evolving field of AI?",
        ],
    },
    JobRole.UX_DESIGNER: {
        ExperienceLevel.FRESHER: [
            "Why are you interested in UX design?",
            "What design tools have you learned to use?",
            "Describe your understanding of user-centered design.",
            "Have you created any design projects yet?",
        ],
        ExperienceLevel.JUNIOR: [
            "Tell me about your design process.",
            "How do you conduct user research?",
            "Describe a design project you've worked on.",
            "How do you handle feedback on your designs?",
        ],
        ExperienceLevel.MID_LEVEL: [
            "How do you translate user needs into design solutions?",
            "Describe your experience with usability testing.",
            "How do you collaborate with developers?",
            "Tell me about a challenging design problem you solved.",
        ],
        ExperienceLevel.SENIOR: [
            "How do you approach UX strategy for large products?",
            "Describe how you've built or managed a design system.",
            "How do you measure the success of your UX designs?",
            "Tell me about how you mentor junior designers.",
        ],
    },
    JobRole.DATA_SCIENTIST: {
        ExperienceLevel.FRESHER: [
            "Why are you interested in data science?",
            "What statistical concepts are you familiar with?",
            "What programming languages do you know for data analysis?",
            "Have you worked on any data projects?",
        ],
        ExperienceLevel.JUNIOR: [
            "Describe a data analysis project you've worked on.",
            "How do you approach data cleaning and preparation?",
            "What visualization tools have you worked with?",
            "How do you determine which statistical test to use?",
        ],
        ExperienceLevel.MID_LEVEL: [
            "How do you approach feature engineering?",
            "Describe your experience with big data technologies.",
            "How do you communicate technical findings to non-technical stakeholders?",
            "Tell me about a challenging data problem you solved.",
        ],
        ExperienceLevel.SENIOR: [
            "How do you build data science teams and processes?",
            "Describe a complex data pipeline you've designed.",
            "How do you approach model deployment and monitoring?",
            "How do you ensure ethical use of data in your projects?",
        ],
    },
}


def _assert_table_complete() -> None:
    missing = [
        f"{role.value}/{level.value}"
        for role in JobRole
        for level in ExperienceLevel
        if level not in FALLBACK_QUESTIONS.get(role, {})
    ]
    if missing:
        raise RuntimeError(f"Fallback question table is missing: {', '.join(missing)}")


_assert_table_complete()


def fallback_questions(role: JobRole, level: ExperienceLevel, count: int | None = None) -> list[str]:
    """Static questions for a role/level pair; one generic question if the pair has none."""
    base = list(FALLBACK_QUESTIONS.get(role, {}).get(level) or [])
    if not base:
        return [
            f"Mock questions for {role.value}/{level.value} not defined. "
            "Tell me about a project you are proud of."
        ]
    if count is not None:
        return base[:max(1, int(count))]
    return base


# ---------- QUESTION COUNT ----------

def question_count_for(
    is_hr_scheduled: bool,
    duration_seconds: int | None = None,
    per_question_limit: int = QUESTION_TIME_LIMIT_SEC,
) -> int:
    if not is_hr_scheduled:
        return DEFAULT_PRACTICE_QUESTION_COUNT
    if duration_seconds and duration_seconds > 0:
        return max(1, int(duration_seconds) // max(1, int(per_question_limit)))
    return DEFAULT_SCHEDULED_QUESTION_COUNT
