ADMIN = "admin"
MANAGER = "manager"
USER = "user"

ROLES = (ADMIN, MANAGER, USER)
CERTIFICATE_EDITOR_ROLES = (ADMIN, MANAGER)

REFERENCE_LEVELS = ("A1", "A2", "B1", "B2", "C1", "C2")

# MO morning, MI midday, NM afternoon, AB evening
TIME_SLOTS = ("MO", "MI", "NM", "AB")

REFERENCE_PREFIX = "GLZ"
REFERENCE_SEQUENCE_WIDTH = 4

OUTSTANDING = "Outstanding"
GOOD = "Good"
SATISFACTORY = "Satisfactory"
PARTICIPANT = "Participant"
EVALUATIONS = (OUTSTANDING, GOOD, SATISFACTORY, PARTICIPANT)

COMPLETE_LEVEL = "Complete level"
PARTIALLY_COMPLETED = "Partially completed level"
COURSE_DROPPED = "Course dropped out"
NO_PARTICIPATION = "No participation"
COURSE_INFOS = (COMPLETE_LEVEL, PARTIALLY_COMPLETED, COURSE_DROPPED, NO_PARTICIPATION)
DEFAULT_COURSE_INFO = COMPLETE_LEVEL

# Ordered (keywords, value) rows; the first row with a matching keyword wins.
EVALUATION_KEYWORDS = (
    (("outstanding", "excellent", "sehr gut", "very good", "très bien", "tres bien"), OUTSTANDING),
    (("good", "gut", "bon"), GOOD),
    (("satisfactory", "satisfaisant", "erfolg", "assez bien"), SATISFACTORY),
    (("participant", "teilgenommen", "participation"), PARTICIPANT),
)

COURSE_INFO_KEYWORDS = (
    (
        ("no participation", "keine teilnahme", "aucune participation", "pas de participation"),
        NO_PARTICIPATION,
    ),
    (
        ("partial", "partiel", "teilweise", "incomplet", "unvollständig", "unvollstandig"),
        PARTIALLY_COMPLETED,
    ),
    (("drop", "abgebrochen", "abandon"), COURSE_DROPPED),
    (("complete", "complet", "komplett"), COMPLETE_LEVEL),
)

EVALUATION_LABELS = {
    OUTSTANDING: "mit sehr gutem Erfolg / Outstanding",
    GOOD: "mit gutem Erfolg / Good",
    SATISFACTORY: "mit Erfolg / Satisfactory",
    PARTICIPANT: "Teilgenommen / Participant",
}

COURSE_INFO_LABELS = {
    COMPLETE_LEVEL: "Komplette Stufe / Complete level",
    PARTIALLY_COMPLETED: "Teilweise absolvierte Stufe / Partially completed level",
    COURSE_DROPPED: "Kurs abgebrochen / Course dropped out",
    NO_PARTICIPATION: "Keine Teilnahme / No participation",
}

# Spreadsheet header aliases, keyed by certificate field.
IMPORT_COLUMNS = {
    "fullName": ("Nom complet", "Full name", "Name"),
    "dateOfBirth": ("Date de naissance", "Date of birth", "Birth date"),
    "placeOfBirth": ("Lieu de naissance", "Place of birth", "Birth place"),
    "referenceLevel": ("Niveau de référence", "Reference level", "Level"),
    "courseStartDate": ("Date de début", "Course start date", "Start date"),
    "courseEndDate": ("Date de fin", "Course end date", "End date"),
    "lessonUnits": ("Nombre de leçons", "Lesson units", "Lessons"),
    "lessonsAttended": ("Leçons suivies", "Lessons attended"),
    "comments": ("Commentaires", "Comments"),
    "evaluation": ("Évaluation", "Evaluation"),
    "courseInfo": ("Info cours", "Course info", "Course information"),
}

IMPORT_EXTENSIONS = (".xlsx", ".xls", ".csv")
