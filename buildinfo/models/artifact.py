from pydantic import Field

from buildinfo.models.base import ChecksumRecord


class Artifact(ChecksumRecord):
    """A file produced by a build module."""
    name: str = ''
    type: str = ''
    path: str = ''
    # Repository the artifact was deployed to. Informational only.
    original_deployment_repo: str = Field(
        default='', alias='originalDeploymentRepo',
    )

    @property
    def directory(self) -> str:
        """Everything in path before the last '/', empty without a separator."""
        if '/' not in self.path:
            return ''
        return self.path.rsplit('/', 1)[0]

    def is_same_logical_artifact(self, other: 'Artifact') -> bool:
        """
        Tell whether `other` is a rebuild of this artifact.

        Both must carry the same name and either live in the same directory
        or come from the same deployment repository. An empty deployment
        repository on either side matches any repository.
        """
        if self.name != other.name:
            return False
        if self.directory == other.directory:
            return True
        mine, theirs = self.original_deployment_repo, other.original_deployment_repo
        return not mine or not theirs or mine == theirs
