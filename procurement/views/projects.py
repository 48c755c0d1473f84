from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from ..services import project_service
from .params import bool_param, query_param


class ProjectsView(APIView):
    """List, create, update and delete projects.

    DELETE soft-deletes unless ``hard=true`` is passed.
    """

    def get(self, request):
        projects = project_service.list_projects(query_param(request, "corporation_uuid"))
        return Response({"data": projects})

    def post(self, request):
        project = project_service.create_project(request.data)
        return Response({"data": project}, status=status.HTTP_201_CREATED)

    def put(self, request):
        return Response({"data": project_service.update_project(request.data)})

    def delete(self, request):
        project = project_service.delete_project(query_param(request, "uuid"), hard=bool_param(request, "hard"))
        return Response({"data": project})
