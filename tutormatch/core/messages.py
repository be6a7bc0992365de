# tutormatch/core/messages.py
from tutormatch.core.config import settings

CATALOG = {
    "en": {
        "no_students": "No students waiting (all are already matched or there is no data)",
        "no_volunteers": "No volunteers available ({count} volunteers found, none meet the capacity and scholarship conditions)",
        "generated": "{count} new matches created successfully",
        "missing_fields": "Missing matchId or action",
        "invalid_action": "Invalid action",
        "match_not_found": "Match not found",
        "student_not_found": "Student not found",
        "volunteer_not_found": "Volunteer not found",
        "already_approved": "The match was already approved",
        "already_rejected": "The match was already rejected",
        "capacity_exhausted": "The volunteer has reached maximum capacity",
        "student_matched": "The student is already matched",
        "commit_failed": "The match changed while it was being approved, refresh and retry",
        "approved": "Match approved successfully",
        "rejected": "Match rejected",
        "reason_language": "same native language ({language})",
        "reason_same_city": "same city ({city})",
        "reason_distance": "{km} km apart",
        "reason_far": "distant cities ({km} km)",
        "reason_gender": "gender match",
        "reason_request": "fits special requests",
        "reason_summary": "{quality} match ({score}%) - {clauses}",
        "reason_score_only": "Match score: {score}%",
        "quality_excellent": "Excellent",
        "quality_very_good": "Very good",
        "quality_good": "Good",
        "quality_fair": "Fair",
    },
    "he": {
        "no_students": "אין סטודנטים ממתינים (כולם כבר משובצים או שאין נתונים)",
        "no_volunteers": "אין מתנדבים זמינים (נמצאו {count} מתנדבים אך אף אחד לא עומד בתנאי הקיבולת והמלגה)",
        "generated": "נוצרו {count} התאמות חדשות בהצלחה",
        "missing_fields": "Missing matchId or action",
        "invalid_action": "Invalid action",
        "match_not_found": "התאמה לא נמצאה",
        "student_not_found": "סטודנט לא נמצא",
        "volunteer_not_found": "מתנדב לא נמצא",
        "already_approved": "ההתאמה כבר אושרה",
        "already_rejected": "ההתאמה כבר נדחתה",
        "capacity_exhausted": "המתנדב הגיע למכסה המקסימלית",
        "student_matched": "הסטודנט כבר משובץ",
        "commit_failed": "ההתאמה השתנתה במהלך האישור, נסו שוב",
        "approved": "ההתאמה אושרה בהצלחה",
        "rejected": "ההתאמה נדחתה",
        "reason_language": "שפת אם זהה ({language})",
        "reason_same_city": "אותה עיר ({city})",
        "reason_distance": "מרחק {km} ק\"מ",
        "reason_far": "ערים רחוקות ({km} ק\"מ)",
        "reason_gender": "התאמת מין",
        "reason_request": "התאמה לבקשות מיוחדות",
        "reason_summary": "התאמה {quality} ({score}%) - {clauses}",
        "reason_score_only": "ציון התאמה: {score}%",
        "quality_excellent": "מצוינת",
        "quality_very_good": "טובה מאוד",
        "quality_good": "טובה",
        "quality_fair": "סבירה",
    },
}


def msg(key: str, **kwargs) -> str:
    table = CATALOG.get(settings.locale, CATALOG["en"])
    return table.get(key, CATALOG["en"][key]).format(**kwargs)
