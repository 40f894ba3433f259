"""Product class entity and the built-in product classes.

A product class is a namespaced bundle of domain attributes (optical,
radar, ...) attachable to products and granules. Each attribute is backed
by a column named after the class prefix, e.g. ``opt`` + ``cloudCover``
is stored as ``optCloudCover``.
"""

from dataclasses import dataclass, field

from eostore.domain.entities.feature_type import AttributeType


def column_name(prefix: str, local_name: str) -> str:
    """Build the column name backing a prefixed attribute."""
    if not prefix:
        return local_name
    return prefix + local_name[:1].upper() + local_name[1:]


@dataclass(frozen=True)
class AttributeSpec:
    """A typed attribute declared by a product class."""

    name: str
    type: AttributeType = AttributeType.STRING


@dataclass(frozen=True)
class ProductClass:
    """Product class entity.

    Identity is the (prefix, namespace) pair; instances are immutable once
    registered.

    Attributes:
        name: Class name, matched against a collection's sensor type.
        prefix: Short prefix used for qualified names and column names.
        namespace: Namespace URI scoping the class attributes.
        attributes: Ordered attribute declarations.
    """

    name: str
    prefix: str
    namespace: str
    attributes: tuple[AttributeSpec, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Product class name is required")
        if not self.namespace:
            raise ValueError("Product class namespace is required")
        names = [attribute.name for attribute in self.attributes]
        if len(names) != len(set(names)):
            raise ValueError(f"Product class '{self.name}' declares duplicate attributes")

    def column_name(self, local_name: str) -> str:
        return column_name(self.prefix, local_name)

    def qualified(self, local_name: str) -> str:
        return f"{self.prefix}:{local_name}" if self.prefix else local_name

    def attribute(self, local_name: str) -> AttributeSpec | None:
        """Find a declared attribute by its (case-sensitive) local name."""
        for attribute in self.attributes:
            if attribute.name == local_name:
                return attribute
        return None

    def owns_column(self, column: str) -> bool:
        """Check whether a column name belongs to this class."""
        return any(self.column_name(a.name) == column for a in self.attributes)


def _attrs(*specs: tuple[str, AttributeType]) -> tuple[AttributeSpec, ...]:
    return tuple(AttributeSpec(name, attr_type) for name, attr_type in specs)


_S = AttributeType.STRING
_I = AttributeType.INTEGER
_F = AttributeType.FLOAT
_T = AttributeType.TIMESTAMP

GENERIC = ProductClass(
    name="eop_generic",
    prefix="eo",
    namespace="http://a9.com/-/opensearch/extensions/eo/1.0/",
    attributes=_attrs(
        ("identifier", _S),
        ("parentIdentifier", _S),
        ("productType", _S),
        ("platform", _S),
        ("platformSerialIdentifier", _S),
        ("instrument", _S),
        ("sensorType", _S),
        ("compositeType", _S),
        ("processingLevel", _S),
        ("orbitType", _S),
        ("spectralRange", _S),
        ("wavelength", _I),
        ("acquisitionStation", _S),
        ("acquisitionType", _S),
        ("acquisitionSubType", _S),
        ("productionStatus", _S),
        ("orbitNumber", _I),
        ("orbitDirection", _S),
        ("track", _I),
        ("frame", _I),
        ("swathIdentifier", _S),
        ("productQualityStatus", _S),
        ("processorName", _S),
        ("processingCenter", _S),
        ("processingDate", _T),
        ("processingMode", _S),
        ("creationDate", _T),
        ("modificationDate", _T),
        ("sensorMode", _S),
        ("archivingCenter", _S),
        ("availabilityTime", _T),
    ),
)

OPTICAL = ProductClass(
    name="optical",
    prefix="opt",
    namespace="http://www.opengis.net/opt/2.1",
    attributes=_attrs(
        ("cloudCover", _I),
        ("snowCover", _I),
        ("illuminationAzimuthAngle", _F),
        ("illuminationZenithAngle", _F),
        ("illuminationElevationAngle", _F),
    ),
)

RADAR = ProductClass(
    name="radar",
    prefix="sar",
    namespace="http://www.opengis.net/sar/2.1",
    attributes=_attrs(
        ("polarisationMode", _S),
        ("polarisationChannels", _S),
        ("antennaLookDirection", _S),
        ("minimumIncidenceAngle", _F),
        ("maximumIncidenceAngle", _F),
        ("incidenceAngleVariation", _F),
        ("dopplerFrequency", _F),
    ),
)

ATMOSPHERIC = ProductClass(
    name="atmospheric",
    prefix="atm",
    namespace="http://www.opengis.net/atm/2.1",
    attributes=_attrs(
        ("cloudCover", _I),
        ("snowCover", _I),
        ("species", _S),
        ("verticalRange", _F),
        ("speciesError", _F),
    ),
)

DEFAULT_PRODUCT_CLASSES = (GENERIC, OPTICAL, RADAR, ATMOSPHERIC)
