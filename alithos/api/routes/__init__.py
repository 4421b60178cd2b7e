# One APIRouter per resource; mounted by alithos.api.server
