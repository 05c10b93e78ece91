"""Text projections fed to the embedding provider.

A candidate is embedded three ways (profile, skills, academic); a query is
embedded once from its domain-expanded form.
"""

from collections.abc import Sequence

from src.core.schemas import Candidate, Company, Project

# Major substring -> related skill keywords, used to enrich sparse profiles.
MAJOR_SKILL_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("computer", "software"), "programming, coding, algorithms, software development, debugging"),
    (("business",), "management, strategy, analysis, leadership, communication"),
    (("marketing",), "branding, social media, content creation, advertising, analytics"),
    (("finance", "economics"), "financial analysis, modeling, accounting, investment, risk management"),
    (("engineering",), "problem solving, technical design, project management, innovation"),
)

# Major substring -> academic context phrase (first match wins).
MAJOR_ACADEMIC_CONTEXT: tuple[tuple[tuple[str, ...], str], ...] = (
    (("computer",), "Computer Science, Technology, Programming, Software Development, Data Structures"),
    (("business",), "Business Administration, Management, Strategy, Operations, Marketing"),
    (("engineering",), "Engineering, Technical Problem Solving, Design, Innovation, Mathematics"),
    (("economics", "finance"), "Economics, Finance, Quantitative Analysis, Markets, Investment"),
)

# Query substring -> domain expansion appended to the query text.
QUERY_EXPANSIONS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("marketing",), "digital marketing, social media, content creation, brand management, advertising"),
    (("software", "developer"), "programming, coding, web development, mobile apps, software engineering"),
    (("finance",), "financial analysis, accounting, investment, banking, economics"),
    (("design",), "graphic design, UI/UX, creative, visual design, user experience"),
    (("business",), "business development, strategy, management, consulting, entrepreneurship"),
)


def truncate(text: str, max_chars: int) -> str:
    """Cut ``text`` to at most ``max_chars`` characters."""
    return text if len(text) <= max_chars else text[:max_chars]


def _lookup(
    value: str | None,
    table: tuple[tuple[tuple[str, ...], str], ...],
    *,
    first_only: bool = False,
) -> list[str]:
    if not value:
        return []
    lowered = value.lower()
    hits = [phrase for needles, phrase in table if any(n in lowered for n in needles)]
    return hits[:1] if first_only else hits


def build_profile_text(
    candidate: Candidate,
    applied_projects: Sequence[tuple[str, str | None]] = (),
) -> str:
    """Profile projection: identity, academics, tags and prior applications."""
    c = candidate
    parts: list[str] = []
    if c.name:
        parts.append(f"Name: {c.name}")
    if c.bio:
        parts.append(f"Bio: {c.bio}")
    if c.university:
        parts.append(f"University: {c.university}")
    if c.major:
        parts.append(f"Major: {c.major}")
    if c.education:
        parts.append(f"Education Level: {c.education}")
    if c.graduation_year:
        parts.append(f"Graduation Year: {c.graduation_year}")
    if c.skills:
        parts.append(f"Skills: {', '.join(c.skills)}")
    if c.interests:
        parts.append(f"Interests: {', '.join(c.interests)}")
    if c.goals:
        parts.append(f"Career Goals: {', '.join(c.goals)}")
    if c.location:
        parts.append(f"Location: {c.location}")
    if applied_projects:
        summary = ", ".join(
            f"{title} ({category})" if category else title
            for title, category in list(applied_projects)[:10]
        )
        parts.append(f"Previously Applied To: {summary}")
    return ". ".join(parts)


def build_skills_text(candidate: Candidate) -> str:
    """Skills projection, enriched with major-derived skill keywords."""
    c = candidate
    parts: list[str] = []
    if c.skills:
        parts.append(f"Technical Skills: {', '.join(c.skills)}")
    if c.major:
        parts.append(f"Academic Specialization: {c.major}")
    if c.interests:
        parts.append(f"Professional Interests: {', '.join(c.interests)}")
    if c.goals:
        parts.append(f"Career Aspirations: {', '.join(c.goals)}")
    related = _lookup(c.major, MAJOR_SKILL_KEYWORDS)
    if related:
        parts.append(f"Related Skills: {', '.join(related)}")
    return ". ".join(parts)


def build_academic_text(candidate: Candidate) -> str:
    """Academic projection with a major -> context phrase."""
    c = candidate
    parts: list[str] = []
    if c.university:
        parts.append(f"University: {c.university}")
    if c.major:
        parts.append(f"Field of Study: {c.major}")
    if c.education:
        parts.append(f"Education Level: {c.education}")
    if c.high_school:
        parts.append(f"High School: {c.high_school}")
    if c.graduation_year:
        parts.append(f"Graduation Year: {c.graduation_year}")
    if c.major:
        context = _lookup(c.major, MAJOR_ACADEMIC_CONTEXT, first_only=True)
        parts.append(context[0] if context else f"Academic specialization in {c.major}")
    return ". ".join(parts)


def enhance_query(prompt: str) -> str:
    """Append domain expansions for every bucket the prompt mentions."""
    expansions = _lookup(prompt, QUERY_EXPANSIONS)
    if not expansions:
        return prompt
    return f"{prompt} {' '.join(expansions)}"


def build_project_text(
    project: Project,
    prompt: str | None = None,
    company: Company | None = None,
) -> str:
    """Shortlisting query text for a project, optionally led by a company prompt."""
    details = f"{project.title}. {project.description}"
    if prompt:
        text = f"{prompt}. Project: {details}"
    else:
        text = f"Find candidates for: {details}"
    if project.skills_required:
        text += f". Required skills: {', '.join(project.skills_required)}"
    if project.requirements:
        text += f". Requirements: {', '.join(project.requirements)}"
    if company is not None:
        text += f". Company: {company.name}"
        if company.industry:
            text += f" in {company.industry}"
        if company.one_liner:
            text += f". {company.one_liner}"
        text += "."
    return text
