"""Builders for resource objects in the shape the API server returns them."""

from cstor_mgmt.models.models import CStorPool, CStorVolume, CStorVolumeReplica


def make_pool(name="pool-1", pool_name="cp1", disks=("/dev/sdb",), cache_file="",
              pool_type="", resource_version="1", uid="pool-uid", deletion_timestamp=None,
              phase=""):
    pool_spec = {"poolName": pool_name, "cacheFile": cache_file}
    if pool_type:
        pool_spec["poolType"] = pool_type
    return CStorPool.from_dict({
        "apiVersion": "openebs.io/v1alpha1",
        "kind": "CStorPool",
        "metadata": {
            "name": name,
            "uid": uid,
            "resourceVersion": resource_version,
            "deletionTimestamp": deletion_timestamp,
        },
        "spec": {
            "disks": {"diskList": list(disks)},
            "poolSpec": pool_spec,
        },
        "status": {"phase": phase},
    })


def make_replica(name="vol1-replica", namespace="openebs", vol_name="vol1", capacity="100M",
                 resource_version="1", uid="replica-uid", phase="", pool_guid=""):
    annotations = {"cstor-pool-guid": pool_guid} if pool_guid else {}
    return CStorVolumeReplica.from_dict({
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": uid,
            "resourceVersion": resource_version,
            "annotations": annotations,
        },
        "spec": {"volName": vol_name, "capacity": capacity},
        "status": {"phase": phase},
    })


def make_volume(name="v1", namespace="openebs", uid="x", volume_name="v1", capacity="5G",
                target_ip="10.0.0.1", replication_factor=3, consistency_factor=2,
                resource_version="1", phase=""):
    return CStorVolume.from_dict({
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": uid,
            "resourceVersion": resource_version,
        },
        "spec": {
            "volumeName": volume_name,
            "capacity": capacity,
            "targetIP": target_ip,
            "replicationFactor": replication_factor,
            "consistencyFactor": consistency_factor,
        },
        "status": {"phase": phase},
    })


def written_phases(resource_client):
    """Phases written through a mocked resource client, in order."""
    return [c.args[1] for c in resource_client.update_phase.call_args_list]
