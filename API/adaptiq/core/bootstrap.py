import logging

from sqlalchemy.ext.asyncio import AsyncSession

from adaptiq.core.settings import settings
from adaptiq.models.base import Base
from adaptiq.models.entities import QuizAssignment, Student, SubtopicContent

logger = logging.getLogger(__name__)

DEMO_STUDENT_ID = "demo-student"
DEMO_CLASS_CODE = "10A"
DEMO_ASSIGNMENT_ID = "demo-quiz-photosynthesis"

DEMO_CONTENT = (
    "Photosynthesis is the process by which green plants use sunlight, water and carbon dioxide "
    "to make glucose and release oxygen. It takes place mainly in the chloroplasts of leaf cells, "
    "where the pigment chlorophyll absorbs light energy. The light-dependent reactions split water "
    "and produce ATP and NADPH; the Calvin cycle then fixes carbon dioxide into sugars."
)


async def seed_demo_data(session: AsyncSession) -> None:
    if await session.get(Student, DEMO_STUDENT_ID) is not None:
        return
    session.add(Student(id=DEMO_STUDENT_ID, name="Demo Student", class_code=DEMO_CLASS_CODE))
    session.add(
        QuizAssignment(
            id=DEMO_ASSIGNMENT_ID,
            class_code=DEMO_CLASS_CODE,
            subject_code="BIO",
            chapter_id="life-processes",
            subtopic_id="photosynthesis",
            title="Photosynthesis check-in",
        )
    )
    session.add(
        SubtopicContent(
            subject_code="BIO",
            chapter_id="life-processes",
            subtopic_id="photosynthesis",
            title="Photosynthesis",
            content=DEMO_CONTENT,
        )
    )
    await session.commit()
    logger.info("Seeded demo student, assignment and subtopic content")


async def initialize_database(session: AsyncSession, engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if settings.seed_demo_data:
        await seed_demo_data(session)
