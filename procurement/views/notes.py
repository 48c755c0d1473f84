from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from ..services import receipt_note_service, return_note_service
from ..services.note_common import DEFAULT_PAGE_SIZE
from .params import int_param, query_param


class NoteView(APIView):
    """CRUD for one note type; subclasses name the service functions.

    GET with ``uuid`` returns one note, otherwise a page of the
    corporation's notes (``corporation_uuid``, ``project_uuid``, ``page``,
    ``page_size``). DELETE takes ``uuid`` from the query string.
    """

    get_note = None
    list_notes = None
    create_note = None
    update_note = None
    delete_note = None

    def get(self, request):
        note_uuid = query_param(request, "uuid")
        if note_uuid:
            return Response({"data": self.get_note(note_uuid)})
        return Response(
            self.list_notes(
                query_param(request, "corporation_uuid"),
                project_uuid=query_param(request, "project_uuid"),
                page=int_param(request, "page", 1),
                page_size=int_param(request, "page_size", DEFAULT_PAGE_SIZE),
            )
        )

    def post(self, request):
        return Response({"data": self.create_note(request.data)}, status=status.HTTP_201_CREATED)

    def put(self, request):
        return Response({"data": self.update_note(request.data)})

    def delete(self, request):
        return Response({"data": self.delete_note(query_param(request, "uuid"))})


class StockReceiptNotesView(NoteView):
    get_note = staticmethod(receipt_note_service.get_receipt_note)
    list_notes = staticmethod(receipt_note_service.list_receipt_notes)
    create_note = staticmethod(receipt_note_service.create_receipt_note)
    update_note = staticmethod(receipt_note_service.update_receipt_note)
    delete_note = staticmethod(receipt_note_service.delete_receipt_note)


class StockReturnNotesView(NoteView):
    get_note = staticmethod(return_note_service.get_return_note)
    list_notes = staticmethod(return_note_service.list_return_notes)
    create_note = staticmethod(return_note_service.create_return_note)
    update_note = staticmethod(return_note_service.update_return_note)
    delete_note = staticmethod(return_note_service.delete_return_note)


class NoteItemsView(APIView):
    """Active note items flattened with their parent note's fields.

    Query params (all optional): corporation_uuid, project_uuid,
    item_type, and the note UUID (``receipt_note_uuid`` / ``return_note_uuid``).
    """

    note_param = ""
    list_items = None

    def get(self, request):
        items = self.list_items(
            corporation_uuid=query_param(request, "corporation_uuid"),
            project_uuid=query_param(request, "project_uuid"),
            note_uuid=query_param(request, self.note_param),
            item_type=query_param(request, "item_type"),
        )
        return Response({"data": items})


class ReceiptNoteItemsView(NoteItemsView):
    note_param = "receipt_note_uuid"
    list_items = staticmethod(receipt_note_service.list_receipt_note_items)


class ReturnNoteItemsView(NoteItemsView):
    note_param = "return_note_uuid"
    list_items = staticmethod(return_note_service.list_return_note_items)
