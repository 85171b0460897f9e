from __future__ import annotations

from typing import Any

from bson import ObjectId

from ..db.mongo.ids import parse_object_id, to_public
from ..errors import NotFound
from ..query.builder import QuerySpec
from ..schemas.common import to_document, validate_payload
from ..schemas.learning import CourseIn, CourseStatusIn, CourseVideoIn
from .feedback import rating_summary
from .resource import ResourceService


class CourseService(ResourceService):
    collection_name = "courses"
    model = CourseIn
    not_found_message = "Course not found"
    query_spec = QuerySpec(
        default_sort="-createdAt",
        search_fields=("title", "description", "instructor"),
        field_types={"price": "number", "featured": "bool", "enrollmentsCount": "int"},
    )

    def before_create(self, doc, *, actor=None):
        doc["videos"] = []
        doc["enrollmentsCount"] = 0
        return doc

    def detail(self, doc: dict[str, Any]) -> dict[str, Any]:
        out = to_public(doc)
        out.update(rating_summary(doc["_id"]))
        return out

    def add_video(self, course_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        video = to_document(validate_payload(CourseVideoIn, data))
        course = self.load(course_id)
        video["videoId"] = ObjectId()
        updated = self.coll.update_by_id(course["_id"], {"$push": {"videos": video}})
        self.log.info("course_video_added", course_id=str(course["_id"]), video_id=str(video["videoId"]))
        return updated or course

    def delete_video(self, course_id: Any, video_id: Any) -> dict[str, Any]:
        course = self.load(course_id)
        vid = parse_object_id(video_id)
        if vid is None or not any(v.get("videoId") == vid for v in course.get("videos") or []):
            raise NotFound(message="Video not found")
        updated = self.coll.update_by_id(course["_id"], {"$pull": {"videos": {"videoId": vid}}})
        return updated or course

    def set_status(self, course_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        payload = validate_payload(CourseStatusIn, data)
        course = self.load(course_id)
        return self.coll.set_fields(course["_id"], {"status": payload.status}) or course


courses = CourseService()
