from parcelgis.auth.models import User, UserSession, UserTermsAcceptance  # noqa: F401
from parcelgis.activity.models import UserActivityLog  # noqa: F401
from parcelgis.gis.models import AddressPoint, DataLayerVersion, Parcel, ZoningDistrict  # noqa: F401
