from talon import Controller, GET, controller


@controller("/catalog")
class CatalogController(Controller):

    @GET("/")
    async def index(self, request, response, next):
        return {"catalog": []}


class CatalogHelper:
    pass
