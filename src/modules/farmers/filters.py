import django_filters

from modules.farmers.models import Farmer


class FarmerFilter(django_filters.FilterSet):
    name = django_filters.CharFilter(field_name="name", lookup_expr="icontains")
    farm_name = django_filters.CharFilter(field_name="farm_name", lookup_expr="icontains")
    verified = django_filters.BooleanFilter(field_name="is_verified")

    class Meta:
        model = Farmer
        fields = ["name", "farm_name", "verified"]
